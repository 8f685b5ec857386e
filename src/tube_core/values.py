"""Payload variants held by a Cell, one per type tag."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Union

if TYPE_CHECKING:
    from .model import Cell


@dataclass(frozen=True, slots=True)
class VNumber:
    value: float


@dataclass(frozen=True, slots=True)
class VBool:
    value: bool


@dataclass(frozen=True, slots=True)
class VString:
    value: str


@dataclass(eq=False, slots=True)
class VObject:
    """Property set of an object; shared by every reference to it."""

    props: dict[str, "Cell"] = field(default_factory=dict)


@dataclass(eq=False, slots=True)
class VArray:
    """Sparse index map of an array; iterate with :meth:`ordered`."""

    items: dict[int, "Cell"] = field(default_factory=dict)

    def ordered(self) -> list[tuple[int, "Cell"]]:
        return sorted(self.items.items())

    def max_index(self) -> int | None:
        return max(self.items) if self.items else None


@dataclass(eq=False, slots=True)
class VReference:
    target: "Cell"


class _Unit:
    """Base for the payload-less tags; one instance per subclass."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False


class _NullType(_Unit):
    _instance = None

    def __repr__(self) -> str:
        return "VNull"


class _VoidType(_Unit):
    _instance = None

    def __repr__(self) -> str:
        return "VVoid"


VNull = _NullType()
VVoid = _VoidType()

Value = Union[VNumber, VBool, VString, VObject, VArray, VReference, _NullType, _VoidType]
