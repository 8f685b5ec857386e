"""Casts between value kinds, equality, and literal parsing.

Every node that converts or compares values goes through these functions,
so the coercion rules are defined in exactly one place.  All of them
accept ``None`` for an absent ("undefined") operand and transparently
follow references.
"""

from __future__ import annotations

import math
import re

from .model import Cell, Type

_OCTAL_PREFIX_RE = re.compile(r"^0[0-7]*")
_DECIMAL_RE = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?$")

NAN = float("nan")


# ---------------------------------------------------------------------------
# Literals
# ---------------------------------------------------------------------------

def parse_number_literal(lexeme: str) -> float:
    """Parse Number literal text.

    ``0x1F`` is hexadecimal (lowercase prefix only).  An integer with a
    leading zero is octal, read up to the first non-octal digit, so ``017``
    is 15 and ``08`` is 0.  Anything else is decimal.  Raises ``ValueError``
    on bad text.
    """
    text = lexeme.strip()
    if text.startswith("0x"):
        return float(int(text[2:], 16))
    if len(text) > 1 and text[0] == "0" and text.isdigit():
        return float(int(_OCTAL_PREFIX_RE.match(text).group(), 8))
    return float(text)


def parse_bool_literal(lexeme: str) -> bool:
    return lexeme == "true"


def format_number(value: float) -> str:
    """Canonical Number → String form (``%g``, six significant digits)."""
    return format(value, "g")


# ---------------------------------------------------------------------------
# Casts
# ---------------------------------------------------------------------------

def to_bool(cell: Cell | None) -> bool:
    if cell is None:
        return False
    cell = cell.resolve()
    tag = cell.type
    if tag == Type.BOOL:
        return cell.boolean
    if tag == Type.NUMBER:
        return cell.number != 0
    if tag == Type.STRING:
        return cell.string != ""
    if tag in (Type.OBJECT, Type.ARRAY):
        return True
    return False


def to_number(cell: Cell | None) -> float:
    if cell is None:
        return NAN
    cell = cell.resolve()
    tag = cell.type
    if tag == Type.NUMBER:
        return cell.number
    if tag == Type.BOOL:
        return 1.0 if cell.boolean else 0.0
    if tag == Type.NULL:
        return 0.0
    if tag == Type.STRING:
        text = cell.string.strip()
        if _DECIMAL_RE.match(text):
            return float(text)
        return NAN
    return NAN


def to_string(cell: Cell | None) -> str:
    if cell is None:
        return "undefined"
    cell = cell.resolve()
    tag = cell.type
    if tag == Type.STRING:
        return cell.string
    if tag == Type.NUMBER:
        return format_number(cell.number)
    if tag == Type.BOOL:
        return "true" if cell.boolean else "false"
    if tag == Type.NULL:
        return "null"
    return ""


def to_int32(value: float) -> int:
    if math.isnan(value) or math.isinf(value):
        return 0
    n = int(value) & 0xFFFFFFFF
    return n - 0x100000000 if n & 0x80000000 else n


def to_uint32(value: float) -> int:
    return to_int32(value) & 0xFFFFFFFF


# ---------------------------------------------------------------------------
# Equality
# ---------------------------------------------------------------------------

def strict_equal(a: Cell | None, b: Cell | None) -> bool:
    """Same tag and equal payload; NaN is never equal to anything."""
    if a is None or b is None:
        return a is None and b is None
    a, b = a.resolve(), b.resolve()
    tag = a.type
    if tag != b.type:
        return False
    if tag == Type.NUMBER:
        return a.number == b.number
    if tag == Type.STRING:
        return a.string == b.string
    if tag == Type.BOOL:
        return a.boolean == b.boolean
    if tag in (Type.NULL, Type.VOID):
        return True
    return a is b


_NUMERIC_LIKE = (Type.NUMBER, Type.BOOL, Type.STRING)


def abstract_equal(a: Cell | None, b: Cell | None) -> bool:
    """Strict equality for equal tags, numeric coercion across primitives."""
    if a is None or b is None:
        other = a if b is None else b
        return other is None or other.resolve().type == Type.NULL
    a, b = a.resolve(), b.resolve()
    if a.type == b.type:
        return strict_equal(a, b)
    if a.type in _NUMERIC_LIKE and b.type in _NUMERIC_LIKE:
        return to_number(a) == to_number(b)
    return False
