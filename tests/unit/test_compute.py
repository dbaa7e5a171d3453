"""
Tests for compute(): building functional tensors from a shape and a body.

Covers:
1. Body arity checking (1-4 index variables, *args form, default arguments)
2. Index variable allocation (one fresh variable per DimArg, name hints)
3. Result dtype and buffer shape
"""

import pytest

from tensorexpr.ir.buffer import Placeholder
from tensorexpr.ir.dim_arg import DimArg, unpack_dim_args
from tensorexpr.ir.nodes import BinaryOpIR, FloatImm, IntImm, LoadIR, VarIR
from tensorexpr.shared.errors import MalformedInputError
from tensorexpr.shared.types import BinaryOp, F32, F64, I32
from tensorexpr.tensor import Tensor, compute


class TestComputeArity:
    """compute() checks the body's arity before calling it"""

    @pytest.mark.parametrize("rank,body", [
        (1, lambda i: i),
        (2, lambda i, j: i + j),
        (3, lambda i, j, k: i + j + k),
        (4, lambda i, j, k, l: i * j + k * l),
    ])
    def test_matching_arity(self, rank, body):
        t = compute("t", [DimArg(2)] * rank, body)
        assert isinstance(t, Tensor)
        assert t.ndim() == rank
        assert t.reduce_ndim() == 0

    @pytest.mark.parametrize("rank,body,arity", [
        (2, lambda i: i, 1),
        (1, lambda i, j: i + j, 2),
        (2, lambda i, j, k: i, 3),
        (3, lambda i, j, k, l: i, 4),
    ])
    def test_mismatched_arity(self, rank, body, arity):
        with pytest.raises(MalformedInputError, match=rf"mismatch between body and arg size \({arity}\)"):
            compute("t", [DimArg(2)] * rank, body)

    def test_body_not_called_on_mismatch(self):
        calls = []

        def body(i, j):
            calls.append((i, j))
            return i + j

        with pytest.raises(MalformedInputError):
            compute("t", [DimArg(3)], body)
        assert calls == []

    def test_mismatch_is_value_error(self):
        """Callers catching ValueError see malformed input too"""
        with pytest.raises(ValueError):
            compute("t", [DimArg(3), DimArg(3)], lambda i: i)

    def test_vector_form_receives_all_vars(self):
        seen = []

        def body(*args):
            seen.extend(args)
            return args[0] + args[1] + args[2]

        t = compute("t", [DimArg(2), DimArg(3), DimArg(4)], body)
        assert t.ndim() == 3
        assert tuple(seen) == t.args

    def test_default_arguments_are_optional(self):
        t = compute("t", [DimArg(2), DimArg(3)], lambda i, j, scale=2: (i + j) * scale)
        assert t.ndim() == 2

    def test_scalar_compute(self):
        t = compute("s", [], lambda: 3.0)
        assert t.ndim() == 0
        assert t.body == FloatImm(3.0, F32)


class TestComputeStructure:
    """Index variables, dims and body of a computed tensor"""

    def test_one_fresh_var_per_axis(self):
        t = compute("t", [DimArg(4, "i"), DimArg(5, "j")], lambda i, j: i + j)
        assert len(t.args) == 2
        assert t.arg(0).defid != t.arg(1).defid
        assert t.arg(0).name == "i"
        assert t.arg(1).name == "j"

    def test_vars_not_shared_between_tensors(self):
        a = compute("a", [DimArg(4, "i")], lambda i: i)
        b = compute("b", [DimArg(4, "i")], lambda i: i)
        assert a.arg(0) != b.arg(0)

    def test_dims_follow_dim_args(self):
        n = VarIR("n")
        t = compute("t", [DimArg(4), DimArg(n)], lambda i, j: i * j)
        assert t.dim(0) == IntImm(4)
        assert t.dim(1) is n
        assert t.buf.ndim() == 2

    def test_bare_extents_accepted(self):
        t = compute("t", [4, 5], lambda i, j: i + j)
        assert t.dims == (IntImm(4), IntImm(5))

    def test_body_is_built_from_the_vars(self):
        t = compute("t", [DimArg(4, "i"), DimArg(5, "j")], lambda i, j: i * j)
        assert isinstance(t.body, BinaryOpIR)
        assert t.body.operator == BinaryOp.MUL
        assert t.body.lhs is t.arg(0)
        assert t.body.rhs is t.arg(1)

    def test_dtype_from_body(self):
        assert compute("a", [4], lambda i: i + 1).dtype == I32
        assert compute("b", [4], lambda i: i * 0.5).dtype == F32

        x = Placeholder("x", F64, [4])
        assert compute("c", [4], lambda i: x.load(i) + 1).dtype == F64

    def test_name(self):
        t = compute("output", [4], lambda i: i)
        assert t.name == "output"
        assert t.buf.name == "output"

    def test_reads_placeholder(self):
        a = Placeholder("A", F32, [4, 5])
        t = compute("t", [DimArg(4), DimArg(5)], lambda i, j: a.load(i, j))
        assert isinstance(t.body, LoadIR)
        assert t.body.buf is a.data
        assert t.body.indices == [t.arg(0), t.arg(1)]


class TestDimArg:
    def test_unpack_allocates_distinct_vars(self, resolver):
        dims, args = unpack_dim_args([DimArg(2, "x"), 3, DimArg(4)], resolver)
        assert dims == [IntImm(2), IntImm(3), IntImm(4)]
        assert [a.name for a in args] == ["x", "i", "i"]
        assert len({a.defid for a in args}) == 3

    def test_resolver_owns_ids(self, resolver):
        _, args = unpack_dim_args([2, 2], resolver)
        assert all(a.defid.krate == 1 for a in args)

    def test_unchecked_extent(self):
        """Zero and negative extents are accepted as-is"""
        t = compute("t", [DimArg(0), DimArg(-3)], lambda i, j: i + j)
        assert t.dim(0) == IntImm(0)
        assert t.dim(1) == IntImm(-3)
