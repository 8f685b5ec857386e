"""Type tags and the Cell, the unit of variable and temporary storage."""

from __future__ import annotations

from enum import Enum, auto

from .errors import ContractError
from .values import (
    Value,
    VArray,
    VBool,
    VNull,
    VNumber,
    VObject,
    VReference,
    VString,
    VVoid,
    _NullType,
    _VoidType,
)


# ---------------------------------------------------------------------------
# Type tags
# ---------------------------------------------------------------------------

class Type(Enum):
    VOID = auto()
    NUMBER = auto()
    BOOL = auto()
    STRING = auto()
    OBJECT = auto()
    ARRAY = auto()
    REFERENCE = auto()
    NULL = auto()

    @property
    def label(self) -> str:
        """Lower-case name used by ``typeof`` and in messages."""
        return self.name.lower()


def type_label(tag: Type | None) -> str:
    return "undefined" if tag is None else tag.label


_TAGS: dict[type, Type] = {
    VNumber: Type.NUMBER,
    VBool: Type.BOOL,
    VString: Type.STRING,
    VObject: Type.OBJECT,
    VArray: Type.ARRAY,
    VReference: Type.REFERENCE,
    _NullType: Type.NULL,
    _VoidType: Type.VOID,
}


def tag_of(value: Value) -> Type:
    return _TAGS[type(value)]


def default_value(tag: Type) -> Value:
    """Fresh payload for a new cell of the given tag."""
    if tag == Type.NUMBER:
        return VNumber(0.0)
    if tag == Type.BOOL:
        return VBool(False)
    if tag == Type.STRING:
        return VString("")
    if tag == Type.OBJECT:
        return VObject()
    if tag == Type.ARRAY:
        return VArray()
    if tag == Type.NULL:
        return VNull
    if tag == Type.VOID:
        return VVoid
    raise ContractError(f"cannot create an empty {tag.label} value")


# ---------------------------------------------------------------------------
# Cell
# ---------------------------------------------------------------------------

TEMP_NAME = "__TEMP__"


class Cell:
    """A mutable storage location holding exactly one value.

    The type tag is derived from the payload variant, so replacing the
    payload always updates the tag.  Typed accessors refuse to read a
    payload under the wrong tag.
    """

    __slots__ = ("name", "value", "scope", "temp", "shadow", "released")

    def __init__(
        self,
        value: Value = VVoid,
        name: str = TEMP_NAME,
        scope: int = -1,
        temp: bool = True,
    ) -> None:
        self.name = name
        self.value = value
        self.scope = scope
        self.temp = temp
        self.shadow: Cell | None = None
        self.released = False

    def __repr__(self) -> str:
        kind = "temp" if self.temp else f"scope={self.scope}"
        return f"Cell({self.name!r}, {self.value!r}, {kind})"

    # -- Tag -------------------------------------------------------------

    @property
    def type(self) -> Type:
        return tag_of(self.value)

    def _expect(self, tag: Type) -> None:
        if self.type != tag:
            raise ContractError(
                f"cell {self.name!r} holds {self.type.label}, not {tag.label}"
            )

    # -- Typed reads -----------------------------------------------------

    @property
    def number(self) -> float:
        self._expect(Type.NUMBER)
        return self.value.value

    @property
    def boolean(self) -> bool:
        self._expect(Type.BOOL)
        return self.value.value

    @property
    def string(self) -> str:
        self._expect(Type.STRING)
        return self.value.value

    @property
    def props(self) -> dict[str, Cell]:
        self._expect(Type.OBJECT)
        return self.value.props

    @property
    def items(self) -> dict[int, Cell]:
        self._expect(Type.ARRAY)
        return self.value.items

    @property
    def target(self) -> Cell:
        self._expect(Type.REFERENCE)
        return self.value.target

    # -- Writes ----------------------------------------------------------

    def set(self, value: Value) -> None:
        self.value = value

    def refer(self, target: Cell) -> None:
        self.value = VReference(target)

    def initialize_object(self) -> None:
        self.value = VObject()

    def initialize_array(self) -> None:
        self.value = VArray()

    def resolve(self) -> Cell:
        """Follow references until a non-reference cell is reached."""
        cell = self
        while isinstance(cell.value, VReference):
            cell = cell.value.target
        return cell
