"""
NumPy backend: reference interpreter for lowered statement trees.

Buffers are NumPy arrays; loops run as Python loops. Integer division
truncates toward zero and integer modulo takes the sign of the dividend.
A loop whose stop is not greater than its start runs zero times.
"""

import logging
import operator
from typing import Any, Callable, Dict, List, Optional

import numpy as np

from ..ir.buffer import Buf
from ..ir.nodes import (
    IRVisitor, ExprIR, StmtIR, IntImm, FloatImm, VarIR, BinaryOpIR, CompareSelectIR,
    CastIR, LoadIR, StoreIR, ForIR, BlockIR,
)
from ..ir.scoped_visitor import ScopedIRVisitor
from ..shared.defid import DefId
from ..shared.errors import TensorExprError, TensorExprImplementationError
from ..shared.types import BinaryOp, CompareOp, PrimitiveType, BOOL
from .base import Backend, ExecutionResult

logger = logging.getLogger(__name__)


def _trunc_div(a: int, b: int) -> int:
    q = abs(a) // abs(b)
    return q if (a >= 0) == (b >= 0) else -q


def _trunc_mod(a: int, b: int) -> int:
    return a - b * _trunc_div(a, b)


_COMPARE_OPS: Dict[CompareOp, Callable[[Any, Any], bool]] = {
    CompareOp.EQ: operator.eq,
    CompareOp.NE: operator.ne,
    CompareOp.LT: operator.lt,
    CompareOp.LE: operator.le,
    CompareOp.GT: operator.gt,
    CompareOp.GE: operator.ge,
}


def _coerce(value: Any, dtype: PrimitiveType) -> Any:
    """Python/NumPy scalar of the given dtype."""
    if dtype == BOOL:
        return bool(value)
    if dtype.is_float:
        return dtype.numpy_dtype.type(value)
    return int(value)


class _BufCollector(ScopedIRVisitor):
    """Every buffer a statement tree references, in first-use order."""

    def __init__(self):
        super().__init__()
        self.bufs: List[Buf] = []

    def visit_buf(self, node: Buf) -> None:
        if not any(node is seen for seen in self.bufs):
            self.bufs.append(node)


class NumPyBackend(Backend, IRVisitor[Any]):
    """
    Executes statements for their effect on buffers; expressions return
    scalar values. Variable values are keyed by DefId.
    """

    def __init__(self):
        self._env: Dict[DefId, Any] = {}
        self._inputs: Dict[str, np.ndarray] = {}
        self._arrays: Dict[DefId, np.ndarray] = {}
        self._names: Dict[DefId, str] = {}

    def _reset(self, buffers: Optional[Dict[str, np.ndarray]],
               var_values: Optional[Dict[VarIR, Any]]) -> None:
        self._inputs = dict(buffers or {})
        self._arrays = {}
        self._names = {}
        self._env = {var.defid: value for var, value in (var_values or {}).items()}

    def execute(
        self,
        stmt: StmtIR,
        buffers: Optional[Dict[str, np.ndarray]] = None,
        var_values: Optional[Dict[VarIR, Any]] = None,
    ) -> ExecutionResult:
        self._reset(buffers, var_values)
        collector = _BufCollector()
        stmt.accept(collector)
        try:
            # Outputs exist even when every loop writing them runs zero times
            for buf in collector.bufs:
                self._array_for(buf)
            stmt.accept(self)
        except TensorExprError as e:
            return ExecutionResult(error=e)
        except (ArithmeticError, IndexError, ValueError, TypeError) as e:
            return ExecutionResult(error=RuntimeError(str(e)))
        outputs = dict(self._inputs)
        for defid, array in self._arrays.items():
            outputs[self._names[defid]] = array
        logger.debug(f"Executed kernel; {len(self._arrays)} buffer(s) touched")
        return ExecutionResult(buffers=outputs)

    def execute_expression(
        self,
        expr: ExprIR,
        var_values: Optional[Dict[VarIR, Any]] = None,
    ) -> Any:
        self._reset({}, var_values)
        return expr.accept(self)

    # =========================================================================
    # Buffers
    # =========================================================================

    def _array_for(self, buf: Buf) -> np.ndarray:
        key = buf.base_handle.defid
        if key in self._arrays:
            return self._arrays[key]
        shape = tuple(int(d.accept(self)) for d in buf.dims)
        if buf.name in self._inputs:
            array = np.asarray(self._inputs[buf.name])
            if array.shape != shape:
                raise TensorExprError(
                    f"buffer '{buf.name}' expects shape {shape}, got {array.shape}"
                )
        else:
            array = np.zeros(tuple(max(0, n) for n in shape), dtype=buf.dtype.numpy_dtype)
        self._arrays[key] = array
        self._names[key] = buf.name
        return array

    def _index(self, indices) -> tuple:
        return tuple(int(i.accept(self)) for i in indices)

    # =========================================================================
    # Expressions
    # =========================================================================

    def visit_int_imm(self, node: IntImm) -> Any:
        return node.value

    def visit_float_imm(self, node: FloatImm) -> Any:
        return _coerce(node.value, node.dtype)

    def visit_var(self, node: VarIR) -> Any:
        if node.defid not in self._env:
            raise TensorExprImplementationError(
                f"variable '{node.name}' ({node.defid}) has no value; bind it via var_values"
            )
        return self._env[node.defid]

    def visit_binary_op(self, node: BinaryOpIR) -> Any:
        lhs = node.lhs.accept(self)
        rhs = node.rhs.accept(self)
        op = node.operator
        is_float = node.dtype.is_float
        if op == BinaryOp.ADD:
            result = lhs + rhs
        elif op == BinaryOp.SUB:
            result = lhs - rhs
        elif op == BinaryOp.MUL:
            result = lhs * rhs
        elif op == BinaryOp.DIV:
            result = lhs / rhs if is_float else _trunc_div(int(lhs), int(rhs))
        elif op == BinaryOp.MOD:
            result = np.fmod(lhs, rhs) if is_float else _trunc_mod(int(lhs), int(rhs))
        elif op == BinaryOp.MAX:
            result = max(lhs, rhs)
        elif op == BinaryOp.MIN:
            result = min(lhs, rhs)
        else:
            raise TensorExprImplementationError(f"Unknown binary operator: {op}")
        return _coerce(result, node.dtype)

    def visit_compare_select(self, node: CompareSelectIR) -> Any:
        taken = _COMPARE_OPS[node.operator](node.lhs.accept(self), node.rhs.accept(self))
        branch = node.true_value if taken else node.false_value
        return _coerce(branch.accept(self), node.dtype)

    def visit_cast(self, node: CastIR) -> Any:
        return _coerce(node.src.accept(self), node.dtype)

    def visit_load(self, node: LoadIR) -> Any:
        array = self._array_for(node.buf)
        if not node.mask.accept(self):
            return _coerce(0, node.dtype)
        return _coerce(array[self._index(node.indices)], node.dtype)

    # =========================================================================
    # Statements
    # =========================================================================

    def visit_store(self, node: StoreIR) -> None:
        array = self._array_for(node.buf)
        # A store without a value belongs to an already-expanded tensor
        if node.value is None:
            return None
        if not node.mask.accept(self):
            return None
        array[self._index(node.indices)] = node.value.accept(self)
        return None

    def visit_for(self, node: ForIR) -> None:
        start = int(node.start.accept(self))
        stop = int(node.stop.accept(self))
        key = node.var.defid
        had_outer = key in self._env
        outer = self._env.get(key)
        try:
            for value in range(start, stop):
                self._env[key] = value
                node.body.accept(self)
        finally:
            if had_outer:
                self._env[key] = outer
            else:
                self._env.pop(key, None)
        return None

    def visit_block(self, node: BlockIR) -> None:
        for stmt in node.stmts:
            stmt.accept(self)
        return None

    def visit_buf(self, node: Buf) -> Any:
        return self._array_for(node)
