"""
Tests for reduce() and the built-in reducers.
"""

import pytest

from tensorexpr.ir.buffer import Placeholder
from tensorexpr.ir.dim_arg import DimArg
from tensorexpr.ir.nodes import BinaryOpIR, CastIR, FloatImm, IntImm, LoadIR, VarIR, maximum
from tensorexpr.ir.reduction import Maximum, Minimum, Product, Reducer, Sum
from tensorexpr.shared.errors import MalformedInputError
from tensorexpr.shared.types import BinaryOp, F32, F64, I32, I64
from tensorexpr.tensor import compute, reduce


class TestReducers:
    def test_sum_initializer(self):
        assert Sum().initializer_for(F32) == FloatImm(0.0, F32)
        assert Sum().initializer_for(I64) == IntImm(0, I64)

    def test_product_initializer(self):
        assert Product().initializer_for(F64) == FloatImm(1.0, F64)
        assert Product().initializer_for(I32) == IntImm(1, I32)

    def test_maximum_initializer_is_lowest_value(self):
        assert Maximum().initializer_for(F32) == FloatImm(float("-inf"), F32)
        assert Maximum().initializer_for(I32) == IntImm(-2**31, I32)

    def test_minimum_initializer_is_highest_value(self):
        assert Minimum().initializer_for(F32) == FloatImm(float("inf"), F32)
        assert Minimum().initializer_for(I64) == IntImm(2**63 - 1, I64)

    def test_combine(self):
        x = VarIR("x", F32)
        y = VarIR("y", F32)
        combined = Sum().combine(x, y)
        assert isinstance(combined, BinaryOpIR)
        assert combined.operator == BinaryOp.ADD
        assert Maximum().combine(x, y) == maximum(x, y)

    def test_custom_reducer(self):
        sum_of_squares = Reducer(0, lambda acc, v: acc + v * v)
        a = Placeholder("A", F32, [4])
        r = reduce("r", [], sum_of_squares, a, [DimArg(4)])
        assert r.buf.initializer == FloatImm(0.0, F32)

    def test_body_cast_to_accumulator_dtype(self):
        reducer = Sum()
        a = Placeholder("acc", F64, [2])
        i = VarIR("i")
        value = VarIR("v", F32)
        update = reducer(a.data, value, [i], [])
        assert update.lhs == LoadIR(a.data, [i])
        assert update.rhs == CastIR(F64, value)


class TestReduceSources:
    def test_placeholder_source(self):
        a = Placeholder("A", F32, [4, 6])
        s = reduce("s", [DimArg(4)], Sum(), a, [DimArg(6)])
        assert s.ndim() == 1
        assert s.reduce_ndim() == 1
        assert s.reduce_dim(0) == IntImm(6)
        assert s.dtype == F32
        assert s.buf.initializer == FloatImm(0.0, F32)

    def test_tensor_source(self):
        sq = compute("sq", [DimArg(3), DimArg(5)], lambda i, j: i * j)
        s = reduce("s", [DimArg(3)], Sum(), sq, [DimArg(5)])
        assert s.dtype == I32
        update_value = s.body
        assert update_value.rhs == sq.call(s.arg(0), s.reduce_arg(0))

    def test_callable_source(self):
        a = Placeholder("A", F32, [2, 3])
        b = Placeholder("B", F32, [3, 4])
        c = reduce("C", [DimArg(2, "m"), DimArg(4, "n")], Sum(),
                   lambda m, n, k: a.load(m, k) * b.load(k, n), [DimArg(3, "k")])
        assert c.ndim() == 2
        assert c.reduce_ndim() == 1
        assert c.reduce_arg(0).name == "k"
        assert c.dims == (IntImm(2), IntImm(4))

    def test_reduce_vars_distinct_from_output_vars(self):
        a = Placeholder("A", F32, [4, 6])
        s = reduce("s", [DimArg(4, "i")], Sum(), a, [DimArg(6, "i")])
        assert s.arg(0).defid != s.reduce_arg(0).defid

    def test_integer_maximum(self):
        a = Placeholder("A", I32, [3, 3])
        m = reduce("m", [DimArg(3)], Maximum(), a, [DimArg(3)])
        assert m.dtype == I32
        assert m.buf.initializer == IntImm(-2**31, I32)


class TestReduceErrors:
    def test_placeholder_rank_mismatch(self):
        a = Placeholder("A", F32, [4, 6])
        with pytest.raises(MalformedInputError, match=r"mismatch between body and arg size \(2\)"):
            reduce("s", [DimArg(4)], Sum(), a, [])

    def test_tensor_rank_mismatch(self):
        t = compute("t", [DimArg(4)], lambda i: i)
        with pytest.raises(MalformedInputError, match=r"mismatch between body and arg size \(1\)"):
            reduce("s", [DimArg(4)], Sum(), t, [DimArg(2)])

    def test_callable_arity_mismatch(self):
        calls = []

        def body(i, k):
            calls.append(1)
            return i + k

        with pytest.raises(MalformedInputError, match=r"mismatch between body and arg size \(2\)"):
            reduce("s", [DimArg(4), DimArg(4)], Sum(), body, [DimArg(2)])
        assert calls == []

    def test_non_callable_source(self):
        with pytest.raises(TypeError):
            reduce("s", [DimArg(4)], Sum(), 5, [DimArg(2)])
