"""
Tests for the pass system, IR validation and the lowering driver.
"""

import pytest

from tensorexpr.compiler.driver import LoweringDriver, lower_kernel
from tensorexpr.ir.buffer import Buf, Placeholder
from tensorexpr.ir.dim_arg import DimArg
from tensorexpr.ir.nodes import BlockIR, FloatImm, ForIR, LoadIR, StoreIR, VarIR
from tensorexpr.ir.reduction import Sum
from tensorexpr.passes.base import BasePass, LoweringContext, PassManager
from tensorexpr.passes.ir_validation import IRValidationPass
from tensorexpr.passes.tensor_lowering import TensorLoweringPass
from tensorexpr.shared.errors import TensorExprImplementationError
from tensorexpr.shared.types import F32
from tensorexpr.tensor import Tensor, compute, reduce


class _First(BasePass):
    requires = []

    def run(self, stmt, ctx):
        ctx.set_analysis(_First, "first")
        return stmt


class _Second(BasePass):
    requires = [_First]

    def run(self, stmt, ctx):
        ctx.set_analysis(_Second, ctx.get_analysis(_First) + ", second")
        return stmt


class _CycleA(BasePass):
    requires = []

    def run(self, stmt, ctx):
        return stmt


class _CycleB(BasePass):
    requires = [_CycleA]

    def run(self, stmt, ctx):
        return stmt


_CycleA.requires = [_CycleB]


def _validate(stmt, free_vars=()):
    ctx = LoweringContext([], free_vars)
    result = IRValidationPass().run(stmt, ctx)
    return result, ctx


class TestPassManager:
    def test_dependency_order(self):
        manager = PassManager()
        manager.register_pass(_Second)
        manager.register_pass(_First)
        ctx = LoweringContext([])
        manager.run_all(None, ctx, dump_ir=False)
        assert ctx.get_analysis(_Second) == "first, second"

    def test_cycle_detected(self):
        manager = PassManager()
        manager.register_pass(_CycleA)
        manager.register_pass(_CycleB)
        with pytest.raises(RuntimeError, match="Circular dependency"):
            manager.run_all(None, LoweringContext([]), dump_ir=False)

    def test_missing_analysis(self):
        with pytest.raises(RuntimeError):
            LoweringContext([]).get_analysis(_First)

    def test_dump_ir(self, capsys):
        t = compute("t", [DimArg(2)], lambda i: i)
        LoweringDriver().lower([t], dump_ir=True)
        out = capsys.readouterr().out
        assert "After TensorLoweringPass:" in out
        assert "After IRValidationPass:" in out
        assert '(store "t"' in out

    def test_dump_ir_from_environment(self, capsys, monkeypatch):
        monkeypatch.setenv("TENSOREXPR_DUMP_IR", "1")
        t = compute("t", [DimArg(2)], lambda i: i)
        LoweringDriver().lower([t])
        assert "After TensorLoweringPass:" in capsys.readouterr().out


class TestTensorLoweringPass:
    def test_joins_tensors_in_order(self):
        a = compute("a", [DimArg(3)], lambda i: i)
        b = compute("b", [DimArg(3)], lambda i: a.call(i) * 2)
        ctx = LoweringContext([a, b])
        stmt = TensorLoweringPass().run(None, ctx)
        assert isinstance(stmt, BlockIR)
        assert stmt.stmts == [a.lower_to_stmt(), b.lower_to_stmt()]
        assert list(ctx.get_analysis(TensorLoweringPass)) == ["a", "b"]


class TestIRValidation:
    def test_well_formed_kernel(self):
        a = Placeholder("A", F32, [4, 6])
        s = reduce("s", [DimArg(4)], Sum(), a, [DimArg(6)])
        stmt = s.lower_to_stmt()
        result, ctx = _validate(stmt)
        assert result is stmt
        assert not ctx.reporter.has_errors()

    def test_size_variables_allowed(self):
        n = VarIR("n")
        a = Placeholder("A", F32, [n])
        t = compute("t", [DimArg(n)], lambda i: a.load(i) + 1.0)
        _, ctx = _validate(t.lower_to_stmt())
        assert not ctx.reporter.has_errors()

    def test_unbound_variable(self):
        x = VarIR("x", F32)
        t = compute("t", [DimArg(4)], lambda i: x * 2.0)
        _, ctx = _validate(t.lower_to_stmt())
        assert len(ctx.reporter.errors) == 1
        error = ctx.reporter.errors[0]
        assert "variable 'x'" in error.message
        assert error.code == "E0999"
        assert error.context == '(var "x")'

    def test_free_variable_declared(self):
        x = VarIR("x", F32)
        t = compute("t", [DimArg(4)], lambda i: x * 2.0)
        _, ctx = _validate(t.lower_to_stmt(), free_vars=[x])
        assert not ctx.reporter.has_errors()

    def test_load_rank_mismatch(self):
        buf = Buf("B", [4, 4], F32)
        out = Buf("O", [4], F32)
        i = VarIR("i")
        stmt = ForIR(i, 0, 4, StoreIR(out, [i], LoadIR(buf, [i])))
        _, ctx = _validate(stmt)
        assert len(ctx.reporter.errors) == 1
        assert "load from 'B' uses 1 indices" in ctx.reporter.errors[0].message

    def test_store_rank_mismatch(self):
        out = Buf("O", [4, 4], F32)
        i = VarIR("i")
        stmt = ForIR(i, 0, 4, StoreIR(out, [i], FloatImm(1.0)))
        _, ctx = _validate(stmt)
        assert "store into 'O'" in ctx.reporter.errors[0].message

    def test_loop_variable_rebound(self):
        out = Buf("O", [4], F32)
        i = VarIR("i")
        stmt = ForIR(i, 0, 4, ForIR(i, 0, 4, StoreIR(out, [i], FloatImm(1.0))))
        _, ctx = _validate(stmt)
        assert any("rebound" in e.message for e in ctx.reporter.errors)

    def test_index_used_after_its_loop(self):
        out = Buf("O", [4], F32)
        i = VarIR("i")
        stmt = BlockIR([
            ForIR(i, 0, 4, StoreIR(out, [i], FloatImm(1.0))),
            StoreIR(out, [i], FloatImm(2.0)),
        ])
        _, ctx = _validate(stmt)
        assert len(ctx.reporter.errors) == 1

    def test_expanded_tensor_accepted(self):
        _, ctx = _validate(Tensor.expanded("E", [3, 3]).lower_to_stmt())
        assert not ctx.reporter.has_errors()


class TestLoweringDriver:
    def test_lower_success(self, driver):
        t = compute("t", [DimArg(4), DimArg(4)], lambda i, j: i + j)
        result = driver.lower([t])
        assert result.success
        assert not result.has_errors()
        assert result.get_errors() == []
        assert result.stmt == BlockIR([t.lower_to_stmt()])

    def test_lower_reports_errors(self, driver):
        x = VarIR("x", F32)
        t = compute("t", [DimArg(4)], lambda i: x + 1.0)
        result = driver.lower([t])
        assert not result.success
        assert result.has_errors()
        errors = result.get_errors()
        assert "aborting due to 1 previous error" in errors[0]

    def test_lower_kernel(self):
        t = compute("t", [DimArg(4)], lambda i: i)
        stmt = lower_kernel([t])
        assert isinstance(stmt, BlockIR)
        assert stmt.stmts[0] == t.lower_to_stmt()

    def test_lower_kernel_raises(self):
        x = VarIR("x", F32)
        t = compute("t", [DimArg(4)], lambda i: x + 1.0)
        with pytest.raises(TensorExprImplementationError) as exc_info:
            lower_kernel([t])
        assert exc_info.value.error_code == "E0999"
        assert str(exc_info.value).startswith("[E0999]")
        assert "variable 'x'" in str(exc_info.value)
