"""
IR Nodes

Expression nodes (side-effect free scalar computations) and statement nodes
(stores, loops, blocks) of the tensor-expression IR.

Nodes are never mutated after construction. Equality and hashing are
structural (over all slots), so two independently built trees of the same
shape compare equal while remaining distinct objects.
"""

from abc import ABC, abstractmethod
from typing import Generic, Optional, Sequence, TypeVar, Union, TYPE_CHECKING

from ..shared.defid import DefId, Resolver, assert_defid, default_resolver
from ..shared.types import (
    PrimitiveType, BinaryOp, CompareOp, BOOL, I32, promote_types, infer_literal_type,
)
from ..utils.config import MASK_TRUE

if TYPE_CHECKING:
    from .buffer import Buf

T = TypeVar('T')

Number = Union[bool, int, float]


class IRNode:
    """
    Base class for all IR nodes.

    Design: Regular class with __slots__ (not dataclass) to avoid inheritance
    issues with defaults.
    """
    __slots__ = ()

    def accept(self, visitor: 'IRVisitor[T]') -> 'T':
        """Accept visitor (double dispatch, no isinstance chains in passes)."""
        raise NotImplementedError(f"accept() not implemented for {self.__class__.__name__}")

    def _get_all_attributes(self):
        """Get all attribute values for equality/hashing (works with __slots__)."""
        attrs = {}
        # Walk MRO to collect all slots
        for cls in self.__class__.__mro__:
            if hasattr(cls, '__slots__'):
                slots = cls.__slots__
                if isinstance(slots, str):
                    slots = (slots,)
                for slot in slots:
                    if slot not in attrs:
                        attrs[slot] = getattr(self, slot, None)
        return attrs

    def __eq__(self, other):
        if not isinstance(other, self.__class__) or not isinstance(self, other.__class__):
            return False
        return self._get_all_attributes() == other._get_all_attributes()

    def __ne__(self, other):
        return not self.__eq__(other)

    def __hash__(self):
        hashable_attrs = {}
        for key, value in self._get_all_attributes().items():
            # Lists are stored for indices/dims/statements; hash them as tuples
            if isinstance(value, list):
                hashable_attrs[key] = tuple(value)
            else:
                hashable_attrs[key] = value
        return hash((self.__class__.__name__, tuple(sorted(hashable_attrs.items()))))

    def __repr__(self) -> str:
        from .serialization import serialize_ir
        return serialize_ir(self, pretty=False)


# ============================================================================
# Expressions
# ============================================================================

class ExprIR(IRNode):
    """
    Scalar expression. Every expression has a dtype.

    Python arithmetic operators build new nodes; `==` is structural equality,
    use compare_select() to build comparisons.
    """
    __slots__ = ('dtype',)

    def __init__(self, dtype: PrimitiveType):
        self.dtype = dtype

    def __add__(self, other): return _binary(BinaryOp.ADD, self, other)
    def __radd__(self, other): return _binary(BinaryOp.ADD, other, self)
    def __sub__(self, other): return _binary(BinaryOp.SUB, self, other)
    def __rsub__(self, other): return _binary(BinaryOp.SUB, other, self)
    def __mul__(self, other): return _binary(BinaryOp.MUL, self, other)
    def __rmul__(self, other): return _binary(BinaryOp.MUL, other, self)
    def __truediv__(self, other): return _binary(BinaryOp.DIV, self, other)
    def __rtruediv__(self, other): return _binary(BinaryOp.DIV, other, self)
    def __mod__(self, other): return _binary(BinaryOp.MOD, self, other)
    def __rmod__(self, other): return _binary(BinaryOp.MOD, other, self)

    def __neg__(self):
        return _binary(BinaryOp.SUB, make_imm(0, self.dtype), self)


class IntImm(ExprIR):
    """Integer (or bool) immediate"""
    __slots__ = ('value',)

    def __init__(self, value: int, dtype: PrimitiveType = I32):
        super().__init__(dtype)
        self.value = bool(value) if dtype == BOOL else int(value)

    def accept(self, visitor: 'IRVisitor[T]') -> 'T':
        return visitor.visit_int_imm(self)


class FloatImm(ExprIR):
    """Floating point immediate"""
    __slots__ = ('value',)

    def __init__(self, value: float, dtype: Optional[PrimitiveType] = None):
        super().__init__(dtype if dtype is not None else infer_literal_type(1.0))
        self.value = float(value)

    def accept(self, visitor: 'IRVisitor[T]') -> 'T':
        return visitor.visit_float_imm(self)


class VarIR(ExprIR):
    """
    Symbolic scalar variable (loop index, size variable, buffer handle).
    Identity is the DefId; name is for printing only.
    """
    __slots__ = ('name', 'defid')

    def __init__(self, name: str, dtype: PrimitiveType = I32, defid: Optional[DefId] = None,
                 resolver: Optional[Resolver] = None):
        super().__init__(dtype)
        if defid is None:
            defid = (resolver or default_resolver()).allocate_for_local(name)
        assert_defid(defid, allow_none=False)
        self.name = name
        self.defid = defid

    def accept(self, visitor: 'IRVisitor[T]') -> 'T':
        return visitor.visit_var(self)


class BinaryOpIR(ExprIR):
    """Binary arithmetic: lhs op rhs. Operands already share the result dtype."""
    __slots__ = ('operator', 'lhs', 'rhs')

    def __init__(self, operator: BinaryOp, lhs: ExprIR, rhs: ExprIR,
                 dtype: Optional[PrimitiveType] = None):
        super().__init__(dtype if dtype is not None else promote_types(lhs.dtype, rhs.dtype))
        self.operator = operator
        self.lhs = lhs
        self.rhs = rhs

    def accept(self, visitor: 'IRVisitor[T]') -> 'T':
        return visitor.visit_binary_op(self)


class CompareSelectIR(ExprIR):
    """(lhs op rhs) ? true_value : false_value"""
    __slots__ = ('operator', 'lhs', 'rhs', 'true_value', 'false_value')

    def __init__(self, operator: CompareOp, lhs: ExprIR, rhs: ExprIR,
                 true_value: ExprIR, false_value: ExprIR):
        super().__init__(promote_types(true_value.dtype, false_value.dtype))
        self.operator = operator
        self.lhs = lhs
        self.rhs = rhs
        self.true_value = true_value
        self.false_value = false_value

    def accept(self, visitor: 'IRVisitor[T]') -> 'T':
        return visitor.visit_compare_select(self)


class CastIR(ExprIR):
    """Type cast: src as dtype"""
    __slots__ = ('src',)

    def __init__(self, dtype: PrimitiveType, src: ExprIR):
        super().__init__(dtype)
        self.src = src

    def accept(self, visitor: 'IRVisitor[T]') -> 'T':
        return visitor.visit_cast(self)


class LoadIR(ExprIR):
    """Indexed read of a buffer element: buf[indices] (if mask)"""
    __slots__ = ('buf', 'indices', 'mask')

    def __init__(self, buf: 'Buf', indices: Sequence[ExprIR], mask: Optional[ExprIR] = None):
        super().__init__(buf.dtype)
        self.buf = buf
        self.indices = [as_expr(i) for i in indices]
        self.mask = mask if mask is not None else IntImm(MASK_TRUE)

    def accept(self, visitor: 'IRVisitor[T]') -> 'T':
        return visitor.visit_load(self)


# ============================================================================
# Statements
# ============================================================================

class StmtIR(IRNode):
    """Imperative statement. Execution order is nesting order."""
    __slots__ = ()


class StoreIR(StmtIR):
    """buf[indices] = value (if mask)"""
    __slots__ = ('buf', 'indices', 'value', 'mask')

    def __init__(self, buf: 'Buf', indices: Sequence[ExprIR], value: ExprIR,
                 mask: Optional[ExprIR] = None):
        self.buf = buf
        self.indices = [as_expr(i) for i in indices]
        self.value = value
        self.mask = mask if mask is not None else IntImm(MASK_TRUE)

    def accept(self, visitor: 'IRVisitor[T]') -> 'T':
        return visitor.visit_store(self)


class ForIR(StmtIR):
    """for var in [start, stop): body"""
    __slots__ = ('var', 'start', 'stop', 'body')

    def __init__(self, var: VarIR, start: ExprIR, stop: ExprIR, body: StmtIR):
        self.var = var
        self.start = as_expr(start)
        self.stop = as_expr(stop)
        self.body = body

    def accept(self, visitor: 'IRVisitor[T]') -> 'T':
        return visitor.visit_for(self)


class BlockIR(StmtIR):
    """Ordered sequence of statements"""
    __slots__ = ('stmts',)

    def __init__(self, stmts: Sequence[StmtIR]):
        self.stmts = list(stmts)

    def accept(self, visitor: 'IRVisitor[T]') -> 'T':
        return visitor.visit_block(self)


# ============================================================================
# Builders
# ============================================================================

def make_imm(value: Number, dtype: Optional[PrimitiveType] = None) -> ExprIR:
    """Immediate for a Python number, in dtype when given."""
    if dtype is None:
        dtype = infer_literal_type(value)
    if dtype.is_float:
        return FloatImm(value, dtype)
    return IntImm(value, dtype)


def as_expr(value: Union[ExprIR, Number], like: Optional[ExprIR] = None) -> ExprIR:
    """
    Coerce a Python number to an immediate.

    With `like`, an int literal adopts like's dtype and a float literal adopts
    it when like is floating point, so `x_f64 + 1` stays f64 without a cast.
    """
    if isinstance(value, ExprIR):
        return value
    if isinstance(value, bool):
        return make_imm(value)
    if not isinstance(value, (int, float)):
        raise TypeError(f"Cannot use {type(value).__name__} as an IR expression")
    if like is not None and (isinstance(value, int) or like.dtype.is_float):
        return make_imm(value, like.dtype)
    return make_imm(value)


def cast(value: Union[ExprIR, Number], dtype: PrimitiveType) -> ExprIR:
    """Cast to dtype; no node is created when the dtype already matches."""
    expr = as_expr(value)
    if expr.dtype == dtype:
        return expr
    return CastIR(dtype, expr)


def _binary(operator: BinaryOp, lhs: Union[ExprIR, Number], rhs: Union[ExprIR, Number]) -> ExprIR:
    lhs_e = as_expr(lhs, like=rhs if isinstance(rhs, ExprIR) else None)
    rhs_e = as_expr(rhs, like=lhs_e)
    dtype = promote_types(lhs_e.dtype, rhs_e.dtype)
    return BinaryOpIR(operator, cast(lhs_e, dtype), cast(rhs_e, dtype), dtype)


def maximum(lhs: Union[ExprIR, Number], rhs: Union[ExprIR, Number]) -> ExprIR:
    return _binary(BinaryOp.MAX, lhs, rhs)


def minimum(lhs: Union[ExprIR, Number], rhs: Union[ExprIR, Number]) -> ExprIR:
    return _binary(BinaryOp.MIN, lhs, rhs)


def compare_select(lhs: Union[ExprIR, Number], rhs: Union[ExprIR, Number],
                   true_value: Union[ExprIR, Number], false_value: Union[ExprIR, Number],
                   operator: CompareOp) -> ExprIR:
    """(lhs op rhs) ? true_value : false_value, with both branches promoted to one dtype."""
    lhs_e = as_expr(lhs, like=rhs if isinstance(rhs, ExprIR) else None)
    rhs_e = as_expr(rhs, like=lhs_e)
    cmp_dtype = promote_types(lhs_e.dtype, rhs_e.dtype)
    t = as_expr(true_value, like=false_value if isinstance(false_value, ExprIR) else None)
    f = as_expr(false_value, like=t)
    dtype = promote_types(t.dtype, f.dtype)
    return CompareSelectIR(operator, cast(lhs_e, cmp_dtype), cast(rhs_e, cmp_dtype),
                           cast(t, dtype), cast(f, dtype))


# ============================================================================
# Visitor
# ============================================================================

class IRVisitor(ABC, Generic[T]):
    """Visitor for IR nodes (no isinstance needed)."""

    @abstractmethod
    def visit_int_imm(self, node: IntImm) -> T:
        raise NotImplementedError

    @abstractmethod
    def visit_float_imm(self, node: FloatImm) -> T:
        raise NotImplementedError

    @abstractmethod
    def visit_var(self, node: VarIR) -> T:
        raise NotImplementedError

    @abstractmethod
    def visit_binary_op(self, node: BinaryOpIR) -> T:
        raise NotImplementedError

    @abstractmethod
    def visit_compare_select(self, node: CompareSelectIR) -> T:
        raise NotImplementedError

    @abstractmethod
    def visit_cast(self, node: CastIR) -> T:
        raise NotImplementedError

    @abstractmethod
    def visit_load(self, node: LoadIR) -> T:
        raise NotImplementedError

    @abstractmethod
    def visit_store(self, node: StoreIR) -> T:
        raise NotImplementedError

    @abstractmethod
    def visit_for(self, node: ForIR) -> T:
        raise NotImplementedError

    @abstractmethod
    def visit_block(self, node: BlockIR) -> T:
        raise NotImplementedError

    def visit_buf(self, node: 'Buf') -> T:
        """Visit buffer descriptor. Default: no-op (buffers are leaves for most passes)."""
        return None  # type: ignore[return-value]
