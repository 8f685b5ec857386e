"""Control flow and the builtin statements and calls."""

from __future__ import annotations

from dataclasses import dataclass, field

from .coerce import to_bool, to_string
from .environment import Environment
from .model import Cell, Type, type_label
from .nodes import (
    Declare,
    Node,
    Property,
    Variable,
    assign,
    new_string,
    release_if_temp,
)


def _run(env: Environment, node: Node | None) -> None:
    if node is not None:
        release_if_temp(env, node.evaluate(env))


def _test(env: Environment, node: Node) -> bool:
    cell = node.evaluate(env)
    value = to_bool(cell)
    release_if_temp(env, cell)
    return value


# ---------------------------------------------------------------------------
# Control flow
# ---------------------------------------------------------------------------

@dataclass(eq=False)
class If(Node):
    condition: Node
    then_branch: Node | None = None
    else_branch: Node | None = None

    def __post_init__(self) -> None:
        self.static_type = Type.VOID

    def evaluate(self, env: Environment) -> Cell | None:
        _run(env, self.then_branch if _test(env, self.condition) else self.else_branch)
        return None


@dataclass(eq=False)
class While(Node):
    condition: Node
    body: Node | None = None

    def __post_init__(self) -> None:
        self.static_type = Type.VOID

    def evaluate(self, env: Environment) -> Cell | None:
        while _test(env, self.condition):
            _run(env, self.body)
        return None


@dataclass(eq=False)
class For(Node):
    """``for (init; test; update) body``; the loop gets its own scope, so
    a ``var`` in ``init`` is gone once the loop ends."""

    init: Node | None = None
    test: Node | None = None
    update: Node | None = None
    body: Node | None = None

    def __post_init__(self) -> None:
        self.static_type = Type.VOID

    def evaluate(self, env: Environment) -> Cell | None:
        with env.scope():
            _run(env, self.init)
            while self.test is None or _test(env, self.test):
                _run(env, self.body)
                _run(env, self.update)
        return None


@dataclass(eq=False)
class ForIn(Node):
    """``for (k in obj) body`` over an object's keys in insertion order.

    The key list is taken before the first iteration; keys deleted by the
    body are skipped, keys it adds are not visited.
    """

    iterator: Node
    iterable: Node
    body: Node | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.iterator, (Declare, Variable)):
            raise self.error("for-in iterator must be a variable or declaration")
        tag = self.iterable.static_type
        if tag == Type.ARRAY:
            raise self.error("for-in over arrays is not supported")
        if tag is not None and tag != Type.OBJECT:
            raise self.error(f"cannot iterate over type '{tag.label}'")
        self.static_type = Type.VOID

    def evaluate(self, env: Environment) -> Cell | None:
        with env.scope():
            slot = self.iterator.locate(env)
            source = self.iterable.evaluate(env)
            if slot is None or source is None:
                if source is None:
                    env.report("cannot iterate over undefined", self.line)
                release_if_temp(env, source)
                return None
            if source.type != Type.OBJECT:
                if source.type == Type.ARRAY:
                    env.report("for-in over arrays is not supported", self.line)
                else:
                    env.report(f"cannot iterate over {source.type.label}", self.line)
                release_if_temp(env, source)
                return None

            props = source.props
            for key in list(props):
                member = props.get(key)
                if member is None or member.released:
                    continue
                key_cell = new_string(env, key)
                assign(env, slot, key_cell)
                env.release(key_cell)
                _run(env, self.body)
            release_if_temp(env, source)
        return None


@dataclass(eq=False)
class Break(Node):
    """Accepted by the parser; loops do not react to it."""

    def __post_init__(self) -> None:
        self.static_type = Type.VOID

    def evaluate(self, env: Environment) -> Cell | None:
        return None


# ---------------------------------------------------------------------------
# Builtins
# ---------------------------------------------------------------------------

@dataclass(eq=False)
class Print(Node):
    """Writes the String form of every argument, then a newline."""

    args: list[Node | None] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.static_type = Type.VOID

    def evaluate(self, env: Environment) -> Cell | None:
        out = env.config.output
        for arg in self.args:
            cell = arg.evaluate(env) if arg is not None else None
            out.write(to_string(cell))
            release_if_temp(env, cell)
        out.write("\n")
        return None


@dataclass(eq=False)
class Delete(Node):
    operand: Node

    def __post_init__(self) -> None:
        if isinstance(self.operand, Property) and self.operand.assignment:
            raise self.error("delete needs an existing property")
        if not isinstance(self.operand, (Variable, Property)):
            raise self.error("delete operand must be a variable or property")
        self.static_type = Type.VOID

    def evaluate(self, env: Environment) -> Cell | None:
        if isinstance(self.operand, Property):
            cell = self.operand.detach(env)
        else:
            cell = self.operand.locate(env)
        if cell is not None:
            env.discard(cell)
        return None


@dataclass(eq=False)
class TypeOf(Node):
    operand: Node

    def __post_init__(self) -> None:
        self.static_type = Type.STRING

    def evaluate(self, env: Environment) -> Cell | None:
        cell = self.operand.evaluate(env)
        label = type_label(cell.type if cell is not None else None)
        release_if_temp(env, cell)
        return new_string(env, label)


@dataclass(eq=False)
class Void(Node):
    operand: Node

    def __post_init__(self) -> None:
        self.static_type = Type.VOID

    def evaluate(self, env: Environment) -> Cell | None:
        _run(env, self.operand)
        return None


def _array_operand(node: Node, env: Environment, what: str) -> Cell | None:
    holder = node.evaluate(env)
    if holder is None or holder.type != Type.ARRAY:
        got = type_label(holder.type if holder is not None else None)
        env.report(f"'{what}' requires an array, got {got}", node.line)
        release_if_temp(env, holder)
        return None
    return holder


@dataclass(eq=False)
class Join(Node):
    array: Node
    separator: Node | None = None

    def __post_init__(self) -> None:
        self.require_array(self.array, "join")
        self.static_type = Type.STRING

    def evaluate(self, env: Environment) -> Cell | None:
        holder = _array_operand(self.array, env, "join")
        if holder is None:
            return None
        separator = ","
        if self.separator is not None:
            cell = self.separator.evaluate(env)
            separator = to_string(cell)
            release_if_temp(env, cell)
        text = separator.join(to_string(cell) for _, cell in holder.value.ordered())
        release_if_temp(env, holder)
        return new_string(env, text)


@dataclass(eq=False)
class Push(Node):
    array: Node
    element: Node | None = None

    def __post_init__(self) -> None:
        self.require_array(self.array, "push")
        if self.element is None:
            raise self.error("'push' needs an element")
        if self.element.static_type == Type.VOID:
            raise self.error("cannot push a void expression")
        self.static_type = Type.VOID

    def evaluate(self, env: Environment) -> Cell | None:
        holder = _array_operand(self.array, env, "push")
        if holder is None:
            return None
        value = self.element.evaluate(env)
        index = holder.value.max_index() + 1 if holder.items else 0
        member = env.new_member(str(index))
        holder.items[index] = member
        if value is not None:
            assign(env, member, value)
            release_if_temp(env, value)
        release_if_temp(env, holder)
        return None


@dataclass(eq=False)
class Pop(Node):
    array: Node

    def __post_init__(self) -> None:
        self.require_array(self.array, "pop")

    def evaluate(self, env: Environment) -> Cell | None:
        holder = _array_operand(self.array, env, "pop")
        if holder is None:
            return None
        member = None
        if holder.items:
            member = holder.items.pop(holder.value.max_index())
        release_if_temp(env, holder)
        return member.resolve() if member is not None else None
