"""Tests for tube_core.environment."""

import logging

import pytest

from tube_core.config import EvalConfig
from tube_core.environment import Environment
from tube_core.errors import ContractError, EvaluationError
from tube_core.model import Type
from tube_core.values import VNumber, VVoid


@pytest.fixture
def env():
    env = Environment()
    env.enter_scope()
    return env


class TestScopes:
    def test_depth(self):
        env = Environment()
        assert env.depth == -1
        env.enter_scope()
        env.enter_scope()
        assert env.depth == 1
        env.exit_scope()
        assert env.depth == 0

    def test_exit_without_enter(self):
        with pytest.raises(ContractError):
            Environment().exit_scope()

    def test_declare_without_scope(self):
        with pytest.raises(ContractError):
            Environment().declare("x")

    def test_shadow_and_restore(self, env):
        outer = env.declare("x")
        outer.set(VNumber(1))
        with env.scope():
            inner = env.declare("x")
            inner.set(VNumber(2))
            assert env.lookup("x") is inner
        assert env.lookup("x") is outer
        assert outer.number == 1

    def test_redeclare_in_same_frame_unwinds(self, env):
        with env.scope():
            first = env.declare("x")
            second = env.declare("x")
            assert env.lookup("x") is second
            assert second.shadow is first
        assert env.lookup("x") is None

    def test_inner_only_name_disappears(self, env):
        with env.scope():
            env.declare("tmp")
        assert env.lookup("tmp") is None
        assert "tmp" not in env.active_names()

    def test_exit_archives_cells(self, env):
        with env.scope():
            cell = env.declare("y")
        assert cell in env.archive

    def test_scope_exits_on_exception(self, env):
        with pytest.raises(RuntimeError):
            with env.scope():
                env.declare("x")
                raise RuntimeError("boom")
        assert env.depth == 0
        assert env.lookup("x") is None

    def test_declared_cells_record_depth(self, env):
        with env.scope():
            cell = env.declare("z", Type.NUMBER)
            assert cell.scope == 1
            assert cell.type == Type.NUMBER
            assert not cell.temp
            assert env.scope_cells(1) == [cell]

    def test_scope_cells_out_of_range(self, env):
        with pytest.raises(ContractError):
            env.scope_cells(3)


class TestTemporaries:
    def test_new_and_release(self, env):
        cell = env.new_temporary(Type.NUMBER)
        assert cell.temp
        assert env.live_temporaries == 1
        env.release(cell)
        assert cell.released
        assert cell.value is VVoid
        assert env.live_temporaries == 0

    def test_release_named_cell_raises(self, env):
        with pytest.raises(ContractError):
            env.release(env.declare("x"))

    def test_retain(self, env):
        cell = env.new_temporary(Type.OBJECT)
        env.retain(cell)
        assert not cell.temp
        assert env.live_temporaries == 0

    def test_members_are_not_temporaries(self, env):
        member = env.new_member("k")
        assert not member.temp
        assert member.name == "k"
        assert env.live_temporaries == 0

    def test_discard_named(self, env):
        cell = env.declare("x")
        env.discard(cell)
        assert cell.released

    def test_discard_temporary(self, env):
        cell = env.new_temporary()
        env.discard(cell)
        assert cell.released
        assert env.live_temporaries == 0


class TestReport:
    def test_records_and_logs(self, env, caplog):
        with caplog.at_level(logging.WARNING, logger="tube_core"):
            env.report("missing thing", line=3)
        assert len(env.diagnostics) == 1
        assert env.diagnostics[0].line == 3
        assert "missing thing" in caplog.text

    def test_strict_raises(self):
        env = Environment(EvalConfig(strict=True))
        with pytest.raises(EvaluationError) as info:
            env.report("bad", line=7)
        assert info.value.diagnostic.line == 7
        assert env.diagnostics == []
