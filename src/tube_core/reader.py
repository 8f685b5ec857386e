"""Reader layer: Tube source text → AST (via a lark LALR grammar)."""

from __future__ import annotations

import logging
import re
from functools import lru_cache

import lark
from lark import Transformer, v_args
from lark.exceptions import UnexpectedCharacters, UnexpectedEOF, UnexpectedInput, VisitError

from .coerce import format_number, parse_number_literal
from .errors import BuildError, ParseError
from .model import Type
from .nodes import (
    Assign,
    Bitwise1,
    Bitwise2,
    Block,
    Bool1,
    Bool2,
    BoolCast,
    Comparison,
    Declare,
    Literal,
    Math1,
    Math2,
    Node,
    NumberCast,
    Property,
    StringCast,
    Variable,
)
from .statements import (
    Break,
    Delete,
    For,
    ForIn,
    If,
    Join,
    Pop,
    Print,
    Push,
    TypeOf,
    Void,
    While,
)

logger = logging.getLogger(__name__)


GRAMMAR = r"""
start: statement*

?statement: var_stmt
          | if_stmt
          | while_stmt
          | for_stmt
          | for_in_stmt
          | break_stmt
          | print_stmt
          | expr_stmt

var_stmt: "var" NAME ["=" expression] ";"
if_stmt: "if" "(" expression ")" block [else_clause]
?else_clause: "else" (block | if_stmt)
while_stmt: "while" "(" expression ")" block
for_stmt: "for" "(" [for_init] ";" [expression] ";" [expression] ")" block
?for_init: "var" NAME ["=" expression]                  -> for_var
         | expression
?for_in_stmt: "for" "(" "var" NAME "in" expression ")" block  -> for_in_var
            | "for" "(" NAME "in" expression ")" block        -> for_in_name
break_stmt: "break" ";"
print_stmt: "print" "(" [arguments] ")" ";"
expr_stmt: expression ";"

block: "{" statement* "}"

?expression: assignment

?assignment: logic_or
           | postfix "=" assignment         -> assign

?logic_or: logic_and
         | logic_or "||" logic_and          -> or_

?logic_and: bit_or
          | logic_and "&&" bit_or           -> and_

?bit_or: bit_xor
       | bit_or "|" bit_xor                 -> bor

?bit_xor: bit_and
        | bit_xor "^" bit_and               -> bxor

?bit_and: equality
        | bit_and "&" equality              -> band

?equality: relational
         | equality "==" relational         -> eq
         | equality "!=" relational         -> ne
         | equality "===" relational        -> seq
         | equality "!==" relational        -> sne

?relational: shift
           | relational "<" shift           -> lt
           | relational ">" shift           -> gt
           | relational "<=" shift          -> le
           | relational ">=" shift          -> ge

?shift: additive
      | shift "<<" additive                 -> shl
      | shift ">>" additive                 -> shr
      | shift ">>>" additive                -> ushr

?additive: multiplicative
         | additive "+" multiplicative      -> add
         | additive "-" multiplicative      -> sub

?multiplicative: unary
               | multiplicative "*" unary   -> mul
               | multiplicative "/" unary   -> div
               | multiplicative "%" unary   -> mod

?unary: postfix
      | "-" unary                           -> neg
      | "!" unary                           -> not_
      | "~" unary                           -> bnot
      | "++" unary                          -> pre_inc
      | "--" unary                          -> pre_dec
      | "typeof" unary                      -> typeof
      | "void" unary                        -> void
      | "delete" unary                      -> delete

?postfix: primary
        | postfix "++"                      -> post_inc
        | postfix "--"                      -> post_dec
        | postfix "." NAME                  -> member
        | postfix "[" expression "]"        -> index
        | postfix "." NAME "(" [arguments] ")"  -> method

?primary: NUMBER                            -> number
        | STRING                            -> string
        | "true"                            -> true
        | "false"                           -> false
        | "null"                            -> null
        | NAME                              -> var
        | NAME "(" [arguments] ")"          -> call
        | "(" expression ")"
        | "{" [pairs] "}"                   -> object
        | "[" [arguments] "]"               -> array

pairs: pair ("," pair)*
pair: key ":" expression
?key: NAME                                  -> name_key
    | STRING                                -> string_key
    | NUMBER                                -> number_key

arguments: expression ("," expression)*

NAME: /[A-Za-z_$][A-Za-z0-9_$]*/
NUMBER: /0x[0-9a-fA-F]+/
      | /(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?/
STRING: /"(\\.|[^"\\\n])*"/
      | /'(\\.|[^'\\\n])*'/

%import common.WS
%import common.CPP_COMMENT
%import common.C_COMMENT
%ignore WS
%ignore CPP_COMMENT
%ignore C_COMMENT
"""


# ---------------------------------------------------------------------------
# Literal handling
# ---------------------------------------------------------------------------

_ESCAPE_RE = re.compile(r"\\(x[0-9a-fA-F]{2}|u[0-9a-fA-F]{4}|.)", re.DOTALL)

_SIMPLE_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "b": "\b",
    "f": "\f",
    "v": "\v",
    "0": "\0",
}


def _replace_escape(match: re.Match) -> str:
    body = match.group(1)
    if body[0] in "xu" and len(body) > 1:
        return chr(int(body[1:], 16))
    return _SIMPLE_ESCAPES.get(body, body)


def unescape(text: str) -> str:
    r"""Resolve backslash escapes (``\n``, ``\x41``, ``\u00e9``, ``\'`` ...)."""
    return _ESCAPE_RE.sub(_replace_escape, text)


def _line(meta) -> int | None:
    return None if meta.empty else meta.line


def _unquote(token) -> str:
    return unescape(str(token)[1:-1])


# ---------------------------------------------------------------------------
# Tree → AST
# ---------------------------------------------------------------------------

def _binary(node_cls, op: str):
    def build(self, meta, left, right):
        return node_cls(op, left, right, line=_line(meta))
    return build


def _unary(node_cls, op: str, **extra):
    def build(self, meta, operand):
        return node_cls(op, operand, line=_line(meta), **extra)
    return build


def _wrap(node_cls):
    def build(self, meta, operand):
        return node_cls(operand, line=_line(meta))
    return build


def _declaration(meta, name, value) -> Node:
    declare = Declare(str(name), line=_line(meta))
    if value is None:
        return declare
    return Assign(declare, value, line=_line(meta))


_CASTS = {
    "Number": NumberCast,
    "String": StringCast,
    "Boolean": BoolCast,
}


@v_args(meta=True, inline=True)
class TubeTransformer(Transformer):
    """Builds AST nodes bottom-up; node constructors do the type checks."""

    # -- Statements -----------------------------------------------------

    def start(self, meta, *statements):
        return Block(list(statements), scoped=False, line=_line(meta))

    def block(self, meta, *statements):
        return Block(list(statements), scoped=True, line=_line(meta))

    def var_stmt(self, meta, name, value):
        return _declaration(meta, name, value)

    def for_var(self, meta, name, value):
        return _declaration(meta, name, value)

    def if_stmt(self, meta, condition, then_branch, else_branch):
        return If(condition, then_branch, else_branch, line=_line(meta))

    def while_stmt(self, meta, condition, body):
        return While(condition, body, line=_line(meta))

    def for_stmt(self, meta, init, test, update, body):
        return For(init, test, update, body, line=_line(meta))

    def for_in_var(self, meta, name, iterable, body):
        line = _line(meta)
        return ForIn(Declare(str(name), line=line), iterable, body, line=line)

    def for_in_name(self, meta, name, iterable, body):
        line = _line(meta)
        return ForIn(Variable(str(name), line=line), iterable, body, line=line)

    def break_stmt(self, meta):
        return Break(line=_line(meta))

    def print_stmt(self, meta, args):
        return Print(args or [], line=_line(meta))

    def expr_stmt(self, meta, expression):
        return expression

    # -- Assignment -----------------------------------------------------

    def assign(self, meta, target, value):
        line = _line(meta)
        if isinstance(target, Property):
            target = Property(target.target, target.key, assignment=True, line=target.line)
        elif not isinstance(target, Variable):
            raise BuildError("invalid assignment target", line)
        return Assign(target, value, line=line)

    # -- Operators ------------------------------------------------------

    or_ = _binary(Bool2, "||")
    and_ = _binary(Bool2, "&&")
    bor = _binary(Bitwise2, "|")
    bxor = _binary(Bitwise2, "^")
    band = _binary(Bitwise2, "&")
    eq = _binary(Comparison, "==")
    ne = _binary(Comparison, "!=")
    seq = _binary(Comparison, "===")
    sne = _binary(Comparison, "!==")
    lt = _binary(Comparison, "<")
    gt = _binary(Comparison, ">")
    le = _binary(Comparison, "<=")
    ge = _binary(Comparison, ">=")
    shl = _binary(Bitwise2, "<<")
    shr = _binary(Bitwise2, ">>")
    ushr = _binary(Bitwise2, ">>>")
    add = _binary(Math2, "+")
    sub = _binary(Math2, "-")
    mul = _binary(Math2, "*")
    div = _binary(Math2, "/")
    mod = _binary(Math2, "%")

    neg = _unary(Math1, "-")
    pre_inc = _unary(Math1, "++", prefix=True)
    pre_dec = _unary(Math1, "--", prefix=True)
    post_inc = _unary(Math1, "++", prefix=False)
    post_dec = _unary(Math1, "--", prefix=False)
    not_ = _unary(Bool1, "!")
    bnot = _unary(Bitwise1, "~")

    typeof = _wrap(TypeOf)
    void = _wrap(Void)
    delete = _wrap(Delete)

    # -- Member access and calls ----------------------------------------

    def member(self, meta, target, name):
        line = _line(meta)
        return Property(target, Literal(Type.STRING, str(name), line=line), line=line)

    def index(self, meta, target, key):
        return Property(target, key, line=_line(meta))

    def method(self, meta, target, name, args):
        line = _line(meta)
        name = str(name)
        args = args or []
        if name == "join" and len(args) <= 1:
            return Join(target, args[0] if args else None, line=line)
        if name == "push" and len(args) <= 1:
            return Push(target, args[0] if args else None, line=line)
        if name == "pop" and not args:
            return Pop(target, line=line)
        if name in ("join", "push", "pop"):
            raise BuildError(f"wrong number of arguments to '{name}'", line)
        raise BuildError(f"unknown method '{name}'", line)

    def call(self, meta, name, args):
        line = _line(meta)
        cast = _CASTS.get(str(name))
        if cast is None:
            raise BuildError(f"unknown function '{name}'", line)
        if not args or len(args) != 1:
            raise BuildError(f"'{name}' takes exactly one argument", line)
        return cast(args[0], line=line)

    def arguments(self, meta, *expressions):
        return list(expressions)

    # -- Literals -------------------------------------------------------

    def number(self, meta, token):
        return Literal(Type.NUMBER, str(token), line=_line(meta))

    def string(self, meta, token):
        return Literal(Type.STRING, _unquote(token), line=_line(meta))

    def true(self, meta):
        return Literal(Type.BOOL, "true", line=_line(meta))

    def false(self, meta):
        return Literal(Type.BOOL, "false", line=_line(meta))

    def null(self, meta):
        return Literal(Type.NULL, "null", line=_line(meta))

    def var(self, meta, name):
        return Variable(str(name), line=_line(meta))

    def object(self, meta, pairs):
        return Literal(Type.OBJECT, pairs=pairs or [], line=_line(meta))

    def array(self, meta, elements):
        return Literal(Type.ARRAY, elements=elements or [], line=_line(meta))

    def pairs(self, meta, *items):
        return list(items)

    def pair(self, meta, key, value):
        return (key, value)

    def name_key(self, meta, token):
        return Literal(Type.STRING, str(token), line=_line(meta))

    def string_key(self, meta, token):
        return Literal(Type.STRING, _unquote(token), line=_line(meta))

    def number_key(self, meta, token):
        try:
            text = format_number(parse_number_literal(str(token)))
        except ValueError:
            raise BuildError(f"invalid number literal '{token}'", _line(meta)) from None
        return Literal(Type.STRING, text, line=_line(meta))


# ---------------------------------------------------------------------------
# Public entry point
# ---------------------------------------------------------------------------

@lru_cache(maxsize=1)
def _parser() -> lark.Lark:
    return lark.Lark(
        GRAMMAR,
        start="start",
        parser="lalr",
        propagate_positions=True,
        maybe_placeholders=True,
    )


def _describe(exc: UnexpectedInput) -> str:
    if isinstance(exc, UnexpectedCharacters):
        return f"unexpected character {exc.char!r}"
    if isinstance(exc, UnexpectedEOF):
        return "unexpected end of input"
    token = getattr(exc, "token", None)
    if token is None or token.type == "$END":
        return "unexpected end of input"
    return f"unexpected {str(token)!r}"


def parse(text: str) -> Block:
    """Parse Tube source into the program Block.

    Syntax errors raise :class:`ParseError`; a node that fails its
    construction check raises its :class:`BuildError` unchanged.
    """
    try:
        tree = _parser().parse(text)
    except UnexpectedInput as exc:
        line = getattr(exc, "line", None)
        raise ParseError(_describe(exc), line if line and line > 0 else None) from None

    try:
        program = TubeTransformer().transform(tree)
    except VisitError as exc:
        if isinstance(exc.orig_exc, BuildError):
            raise exc.orig_exc from None
        raise

    logger.debug("parsed %d top-level statements", len(program.statements))
    return program
