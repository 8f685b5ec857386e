"""AST nodes for data access and operators.

Each node validates its children's static types in ``__post_init__`` and
raises :class:`BuildError` on a mismatch, so an ill-typed tree is never
built.  ``evaluate`` returns the cell holding the result (``None`` for
"undefined" or void constructs); ``locate`` returns the raw storage cell
for nodes that can be assigned to.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from typing import Callable, ClassVar

from .coerce import (
    NAN,
    abstract_equal,
    parse_bool_literal,
    parse_number_literal,
    strict_equal,
    to_bool,
    to_int32,
    to_number,
    to_string,
    to_uint32,
)
from .environment import Environment
from .errors import BuildError
from .model import Cell, Type
from .values import VBool, VNull, VNumber, VString

_INDEX_RE = re.compile(r"[0-9]+")


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------

def release_if_temp(env: Environment, cell: Cell | None) -> None:
    if cell is not None and cell.temp and not cell.released:
        env.release(cell)


def assign(env: Environment, left: Cell, right: Cell) -> Cell:
    """Store ``right`` into ``left``.

    Number, Bool, String, Null and Void are copied.  Objects and arrays are
    not: ``left`` becomes a reference to the cell that owns the composite,
    so both names see later property and index writes.
    """
    source = right.resolve()
    if source is left:
        return left
    if source.type in (Type.OBJECT, Type.ARRAY):
        env.retain(source)
        left.refer(source)
    else:
        left.set(source.value)
    return left


def new_number(env: Environment, value: float) -> Cell:
    cell = env.new_temporary(Type.NUMBER)
    cell.set(VNumber(value))
    return cell


def new_bool(env: Environment, value: bool) -> Cell:
    cell = env.new_temporary(Type.BOOL)
    cell.set(VBool(value))
    return cell


def new_string(env: Environment, value: str) -> Cell:
    cell = env.new_temporary(Type.STRING)
    cell.set(VString(value))
    return cell


def _is_string(cell: Cell | None) -> bool:
    return cell is not None and cell.resolve().type == Type.STRING


_NEVER_NUMERIC = (Type.OBJECT, Type.ARRAY, Type.VOID, Type.REFERENCE)


# ---------------------------------------------------------------------------
# Base class
# ---------------------------------------------------------------------------

@dataclass(eq=False)
class Node:
    """Base class of the AST.

    ``static_type`` is fixed at construction; ``None`` means the type is
    only known at run time.
    """

    line: int | None = field(default=None, kw_only=True)
    static_type: Type | None = field(default=None, init=False, repr=False)

    def evaluate(self, env: Environment) -> Cell | None:
        raise NotImplementedError(type(self).__name__)

    def locate(self, env: Environment) -> Cell | None:
        return self.evaluate(env)

    def error(self, message: str) -> BuildError:
        return BuildError(message, self.line)

    def require_numeric(self, operand: Node, allow_string: bool = False) -> None:
        tag = operand.static_type
        if tag in _NEVER_NUMERIC or (tag == Type.STRING and not allow_string):
            raise self.error(f"cannot use type '{tag.label}' in mathematical expressions")

    def require_array(self, operand: Node, what: str) -> None:
        tag = operand.static_type
        if tag is not None and tag != Type.ARRAY:
            raise self.error(f"'{what}' requires an array operand (got '{tag.label}')")


# ---------------------------------------------------------------------------
# Blocks and names
# ---------------------------------------------------------------------------

@dataclass(eq=False)
class Block(Node):
    """A statement list; brace blocks (``scoped``) get their own frame."""

    statements: list[Node] = field(default_factory=list)
    scoped: bool = False

    def __post_init__(self) -> None:
        self.static_type = Type.VOID

    def evaluate(self, env: Environment) -> Cell | None:
        if self.scoped:
            with env.scope():
                self._run(env)
        else:
            self._run(env)
        return None

    def _run(self, env: Environment) -> None:
        for statement in self.statements:
            release_if_temp(env, statement.evaluate(env))


@dataclass(eq=False)
class Declare(Node):
    """``var name``: a new binding in the innermost scope."""

    name: str

    def __post_init__(self) -> None:
        if not self.name:
            raise self.error("declaration without a name")

    def evaluate(self, env: Environment) -> Cell | None:
        return env.declare(self.name)


@dataclass(eq=False)
class Variable(Node):
    name: str

    def __post_init__(self) -> None:
        if not self.name:
            raise self.error("variable without a name")

    def locate(self, env: Environment) -> Cell | None:
        cell = env.lookup(self.name)
        if cell is None:
            env.report(f"undeclared variable '{self.name}'", self.line)
            return None
        if cell.released:
            env.report(f"variable '{self.name}' has been deleted", self.line)
            return None
        return cell

    def evaluate(self, env: Environment) -> Cell | None:
        cell = self.locate(env)
        if cell is None:
            return None
        target = cell.resolve()
        if target.released:
            env.report(f"variable '{self.name}' refers to a deleted value", self.line)
            return None
        return target


# ---------------------------------------------------------------------------
# Literals
# ---------------------------------------------------------------------------

_LITERAL_TYPES = (Type.NUMBER, Type.BOOL, Type.STRING, Type.NULL, Type.OBJECT, Type.ARRAY)


@dataclass(eq=False)
class Literal(Node):
    """A constant; the lexeme is parsed each time the literal is evaluated.

    Object literals carry ``(key, value)`` node pairs, array literals their
    element nodes.
    """

    literal_type: Type
    lexeme: str = ""
    pairs: list[tuple[Node, Node]] = field(default_factory=list)
    elements: list[Node] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.literal_type not in _LITERAL_TYPES:
            raise self.error(f"cannot build a literal of type '{self.literal_type.label}'")
        if self.literal_type == Type.NUMBER:
            try:
                parse_number_literal(self.lexeme)
            except ValueError:
                raise self.error(f"invalid number literal '{self.lexeme}'") from None
        if self.pairs and self.literal_type != Type.OBJECT:
            raise self.error("only object literals take key/value pairs")
        if self.elements and self.literal_type != Type.ARRAY:
            raise self.error("only array literals take elements")
        for _, value in self.pairs:
            if value.static_type == Type.VOID:
                raise self.error("cannot use a void expression as a property value")
        self.static_type = self.literal_type

    def evaluate(self, env: Environment) -> Cell | None:
        out = env.new_temporary(self.literal_type)
        tag = self.literal_type
        if tag == Type.NUMBER:
            out.set(VNumber(parse_number_literal(self.lexeme)))
        elif tag == Type.BOOL:
            out.set(VBool(parse_bool_literal(self.lexeme)))
        elif tag == Type.STRING:
            out.set(VString(self.lexeme))
        elif tag == Type.NULL:
            out.set(VNull)
        elif tag == Type.OBJECT:
            out.initialize_object()
            for key_node, value_node in self.pairs:
                key_cell = key_node.evaluate(env)
                key = to_string(key_cell)
                release_if_temp(env, key_cell)
                value = value_node.evaluate(env)
                member = env.new_member(key)
                out.props[key] = member
                if value is not None:
                    assign(env, member, value)
                    release_if_temp(env, value)
        else:
            out.initialize_array()
            for index, element_node in enumerate(self.elements):
                member = env.new_member(str(index))
                out.items[index] = member
                value = element_node.evaluate(env)
                if value is not None:
                    assign(env, member, value)
                    release_if_temp(env, value)
        return out


# ---------------------------------------------------------------------------
# Property / index access
# ---------------------------------------------------------------------------

def _array_index(key: str) -> int | None:
    """Only plain decimal digit strings (the String form of a whole
    Number) address array slots."""
    if _INDEX_RE.fullmatch(key):
        return int(key)
    return None


@dataclass(eq=False)
class Property(Node):
    """``target.key`` / ``target[key]``.

    In assignment mode a fresh member cell is bound at the key every time
    and returned for the caller to assign into.  Otherwise the existing
    entry is returned, and a missing one is reported as a runtime error.
    """

    target: Node
    key: Node
    assignment: bool = False

    def __post_init__(self) -> None:
        tag = self.target.static_type
        if tag is not None and tag not in (Type.OBJECT, Type.ARRAY):
            raise self.error(f"cannot access a property of type '{tag.label}'")

    def _describe(self, tag: Type) -> str:
        if isinstance(self.target, Variable):
            return f"{tag.label} '{self.target.name}'"
        return tag.label

    def _find(self, env: Environment, create: bool, detach: bool = False) -> Cell | None:
        holder = self.target.evaluate(env)
        key_cell = self.key.evaluate(env)
        key = to_string(key_cell)
        release_if_temp(env, key_cell)

        if holder is None:
            env.report(f"cannot access property '{key}' of undefined", self.line)
            return None

        tag = holder.type
        if tag == Type.OBJECT:
            slots: dict = holder.props
            slot_key: str | int = key
        elif tag == Type.ARRAY:
            index = _array_index(key)
            if index is None:
                env.report(f"invalid array index '{key}'", self.line)
                release_if_temp(env, holder)
                return None
            slots = holder.items
            slot_key = index
        else:
            env.report(f"cannot access property '{key}' of {tag.label}", self.line)
            release_if_temp(env, holder)
            return None

        if create:
            cell = env.new_member(key)
            slots[slot_key] = cell
        else:
            cell = slots.get(slot_key)
            if cell is None or cell.released:
                what = "property" if tag == Type.OBJECT else "index"
                env.report(f"{self._describe(tag)} does not have {what} '{key}'", self.line)
                release_if_temp(env, holder)
                return None
            if detach:
                del slots[slot_key]
        # The returned member is owned by the holder.
        env.retain(holder)
        return cell

    def locate(self, env: Environment) -> Cell | None:
        return self._find(env, create=self.assignment)

    def detach(self, env: Environment) -> Cell | None:
        """Remove the existing entry from its object or array and return it."""
        return self._find(env, create=False, detach=True)

    def evaluate(self, env: Environment) -> Cell | None:
        cell = self._find(env, create=self.assignment)
        if cell is None or self.assignment:
            return cell
        target = cell.resolve()
        if target.released:
            env.report("property refers to a deleted value", self.line)
            return None
        return target


# ---------------------------------------------------------------------------
# Assignment
# ---------------------------------------------------------------------------

@dataclass(eq=False)
class Assign(Node):
    """``target = value``; the value is evaluated first."""

    target: Node
    value: Node

    def __post_init__(self) -> None:
        target = self.target
        if not (
            isinstance(target, (Variable, Declare))
            or (isinstance(target, Property) and target.assignment)
        ):
            raise self.error("invalid assignment target")
        if self.value.static_type == Type.VOID:
            raise self.error("cannot assign a void expression")
        self.static_type = self.value.static_type

    def evaluate(self, env: Environment) -> Cell | None:
        right = self.value.evaluate(env)
        # The target is bound even when there is nothing to store.
        left = self.target.locate(env)
        if left is None or right is None:
            release_if_temp(env, right)
            return None
        assign(env, left, right)
        release_if_temp(env, right)
        return left


# ---------------------------------------------------------------------------
# Arithmetic
# ---------------------------------------------------------------------------

@dataclass(eq=False)
class Math1(Node):
    """Unary ``-`` and the increment/decrement operators.

    For ``++``/``--`` the result is the value after the update when
    ``prefix`` is set and the value before it otherwise.
    """

    op: str
    operand: Node
    prefix: bool = True

    OPS: ClassVar[tuple[str, ...]] = ("-", "++", "--")

    def __post_init__(self) -> None:
        if self.op not in self.OPS:
            raise self.error(f"unknown unary operator '{self.op}'")
        self.require_numeric(self.operand)
        if self.op != "-" and not isinstance(self.operand, (Variable, Property)):
            raise self.error(f"operand of '{self.op}' must be a variable or property")
        if isinstance(self.operand, Property) and self.operand.assignment:
            raise self.error(f"operand of '{self.op}' must read an existing property")
        self.static_type = Type.NUMBER

    def evaluate(self, env: Environment) -> Cell | None:
        if self.op == "-":
            cell = self.operand.evaluate(env)
            value = -to_number(cell)
            release_if_temp(env, cell)
            return new_number(env, value)

        cell = self.operand.locate(env)
        if cell is None:
            return None
        before = to_number(cell)
        after = before + 1 if self.op == "++" else before - 1
        cell.set(VNumber(after))
        return new_number(env, after if self.prefix else before)


def _divide(x: float, y: float) -> float:
    if y == 0:
        if x == 0 or math.isnan(x):
            return NAN
        return math.copysign(math.inf, x) * math.copysign(1.0, y)
    return x / y


def _remainder(x: float, y: float) -> float:
    if y == 0 or math.isinf(x) or math.isnan(x) or math.isnan(y):
        return NAN
    if math.isinf(y):
        return x
    return math.fmod(x, y)


_ARITHMETIC: dict[str, Callable[[float, float], float]] = {
    "+": lambda x, y: x + y,
    "-": lambda x, y: x - y,
    "*": lambda x, y: x * y,
    "/": _divide,
    "%": _remainder,
}

_NUMBER_LIKE = (Type.NUMBER, Type.BOOL, Type.NULL)


@dataclass(eq=False)
class Math2(Node):
    """Binary arithmetic; ``+`` concatenates when either side is a String."""

    op: str
    left: Node
    right: Node

    def __post_init__(self) -> None:
        if self.op not in _ARITHMETIC:
            raise self.error(f"unknown arithmetic operator '{self.op}'")
        concat = self.op == "+"
        self.require_numeric(self.left, allow_string=concat)
        self.require_numeric(self.right, allow_string=concat)
        tags = (self.left.static_type, self.right.static_type)
        if concat and Type.STRING in tags:
            self.static_type = Type.STRING
        elif not concat or all(tag in _NUMBER_LIKE for tag in tags):
            self.static_type = Type.NUMBER

    def evaluate(self, env: Environment) -> Cell | None:
        a = self.left.evaluate(env)
        b = self.right.evaluate(env)
        if self.op == "+" and (_is_string(a) or _is_string(b)):
            out = new_string(env, to_string(a) + to_string(b))
        else:
            out = new_number(env, _ARITHMETIC[self.op](to_number(a), to_number(b)))
        release_if_temp(env, a)
        release_if_temp(env, b)
        return out


# ---------------------------------------------------------------------------
# Comparison
# ---------------------------------------------------------------------------

_RELATIONAL: dict[str, Callable[[float, float], bool]] = {
    "<": lambda x, y: x < y,
    ">": lambda x, y: x > y,
    "<=": lambda x, y: x <= y,
    ">=": lambda x, y: x >= y,
}

_EQUALITY: dict[str, Callable[[Cell | None, Cell | None], bool]] = {
    "==": abstract_equal,
    "!=": lambda a, b: not abstract_equal(a, b),
    "===": strict_equal,
    "!==": lambda a, b: not strict_equal(a, b),
}


@dataclass(eq=False)
class Comparison(Node):
    op: str
    left: Node
    right: Node

    def __post_init__(self) -> None:
        if self.op in _RELATIONAL:
            for operand in (self.left, self.right):
                tag = operand.static_type
                if tag is not None and tag != Type.NUMBER:
                    raise self.error(
                        f"relational operator '{self.op}' requires number operands "
                        f"(got '{tag.label}')"
                    )
        elif self.op not in _EQUALITY:
            raise self.error(f"unknown comparison operator '{self.op}'")
        self.static_type = Type.BOOL

    def evaluate(self, env: Environment) -> Cell | None:
        a = self.left.evaluate(env)
        b = self.right.evaluate(env)
        if self.op in _EQUALITY:
            result = _EQUALITY[self.op](a, b)
        elif (
            a is not None and b is not None
            and a.type == Type.NUMBER and b.type == Type.NUMBER
        ):
            result = _RELATIONAL[self.op](a.number, b.number)
        else:
            result = False
        release_if_temp(env, a)
        release_if_temp(env, b)
        return new_bool(env, result)


# ---------------------------------------------------------------------------
# Casts
# ---------------------------------------------------------------------------

@dataclass(eq=False)
class _Cast(Node):
    """Converts its operand; a value already of the target tag is returned
    as the same cell, not a copy."""

    operand: Node

    tag: ClassVar[Type]

    def __post_init__(self) -> None:
        self.static_type = self.tag

    def convert(self, env: Environment, cell: Cell | None) -> Cell:
        raise NotImplementedError

    def evaluate(self, env: Environment) -> Cell | None:
        cell = self.operand.evaluate(env)
        if cell is not None and cell.type == self.tag:
            return cell
        out = self.convert(env, cell)
        release_if_temp(env, cell)
        return out


@dataclass(eq=False)
class BoolCast(_Cast):
    tag: ClassVar[Type] = Type.BOOL

    def convert(self, env: Environment, cell: Cell | None) -> Cell:
        return new_bool(env, to_bool(cell))


@dataclass(eq=False)
class NumberCast(_Cast):
    tag: ClassVar[Type] = Type.NUMBER

    def convert(self, env: Environment, cell: Cell | None) -> Cell:
        return new_number(env, to_number(cell))


@dataclass(eq=False)
class StringCast(_Cast):
    tag: ClassVar[Type] = Type.STRING

    def convert(self, env: Environment, cell: Cell | None) -> Cell:
        return new_string(env, to_string(cell))


# ---------------------------------------------------------------------------
# Logic
# ---------------------------------------------------------------------------

@dataclass(eq=False)
class Bool1(Node):
    op: str
    operand: Node

    def __post_init__(self) -> None:
        if self.op != "!":
            raise self.error(f"unknown logical operator '{self.op}'")
        self.static_type = Type.BOOL

    def evaluate(self, env: Environment) -> Cell | None:
        cell = self.operand.evaluate(env)
        value = not to_bool(cell)
        release_if_temp(env, cell)
        return new_bool(env, value)


@dataclass(eq=False)
class Bool2(Node):
    """``&&`` / ``||``; the right subtree only runs if the left does not
    already decide the result."""

    op: str
    left: Node
    right: Node

    def __post_init__(self) -> None:
        if self.op not in ("&&", "||"):
            raise self.error(f"unknown logical operator '{self.op}'")
        self.static_type = Type.BOOL

    def evaluate(self, env: Environment) -> Cell | None:
        cell = self.left.evaluate(env)
        value = to_bool(cell)
        release_if_temp(env, cell)
        if value == (self.op == "||"):
            return new_bool(env, value)
        cell = self.right.evaluate(env)
        value = to_bool(cell)
        release_if_temp(env, cell)
        return new_bool(env, value)


# ---------------------------------------------------------------------------
# Bitwise
# ---------------------------------------------------------------------------

@dataclass(eq=False)
class Bitwise1(Node):
    op: str
    operand: Node

    def __post_init__(self) -> None:
        if self.op != "~":
            raise self.error(f"unknown bitwise operator '{self.op}'")
        self.require_numeric(self.operand)
        self.static_type = Type.NUMBER

    def evaluate(self, env: Environment) -> Cell | None:
        cell = self.operand.evaluate(env)
        value = ~to_int32(to_number(cell))
        release_if_temp(env, cell)
        return new_number(env, float(value))


_BITWISE: dict[str, Callable[[float, float], int]] = {
    "&": lambda x, y: to_int32(x) & to_int32(y),
    "|": lambda x, y: to_int32(x) | to_int32(y),
    "^": lambda x, y: to_int32(x) ^ to_int32(y),
    "<<": lambda x, y: to_int32(to_int32(x) << (to_uint32(y) & 31)),
    ">>": lambda x, y: to_int32(x) >> (to_uint32(y) & 31),
    ">>>": lambda x, y: to_uint32(x) >> (to_uint32(y) & 31),
}


@dataclass(eq=False)
class Bitwise2(Node):
    """Integer operators; ``>>>`` shifts in zeros."""

    op: str
    left: Node
    right: Node

    def __post_init__(self) -> None:
        if self.op not in _BITWISE:
            raise self.error(f"unknown bitwise operator '{self.op}'")
        self.require_numeric(self.left)
        self.require_numeric(self.right)
        self.static_type = Type.NUMBER

    def evaluate(self, env: Environment) -> Cell | None:
        a = self.left.evaluate(env)
        b = self.right.evaluate(env)
        value = _BITWISE[self.op](to_number(a), to_number(b))
        release_if_temp(env, a)
        release_if_temp(env, b)
        return new_number(env, float(value))
