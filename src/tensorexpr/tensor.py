"""
Tensors

A Tensor is a named, shaped value defined either by a body expression over
its index variables (functional form) or by a backing buffer whose contents
are materialized elsewhere (expanded form, no body).

compute() and reduce() build Tensors from a shape and a body; lower_to_stmt()
expands a Tensor into its canonical loop nest:

    for i in [0, I):                      # output axes, first-declared outermost
      for j in [0, J):
        buf[i, j] = init                  # only for reductions with an initializer
        for k in [0, K):                  # reduction axes, first-declared outermost
          buf[i, j] = combine(buf[i, j], value(i, j, k))
"""

import inspect
import logging
from typing import Callable, List, Optional, Sequence, Tuple, Union

from .ir.buffer import Buf, Placeholder
from .ir.dim_arg import DimArgLike, unpack_dim_args
from .ir.nodes import ExprIR, VarIR, LoadIR, StmtIR, StoreIR, ForIR, BlockIR, IntImm, as_expr
from .ir.reduction import Reducer
from .shared.defid import Resolver
from .shared.errors import MalformedInputError
from .shared.types import PrimitiveType, F32
from .utils.config import LOOP_START, MASK_TRUE

logger = logging.getLogger(__name__)

BodyFunc = Callable[..., Union[ExprIR, int, float]]


class Tensor:
    """
    Invariants: len(dims) == len(args), len(reduce_dims) == len(reduce_args).
    Immutable after construction.
    """

    def __init__(self, buf: Buf, args: Sequence[VarIR], body: Optional[ExprIR] = None,
                 reduce_dims: Sequence[ExprIR] = (), reduce_args: Sequence[VarIR] = ()):
        if buf.ndim() != len(args):
            raise MalformedInputError(
                f"tensor '{buf.name}' has {buf.ndim()} dims but {len(args)} index variables"
            )
        if len(reduce_dims) != len(reduce_args):
            raise MalformedInputError(
                f"tensor '{buf.name}' has {len(reduce_dims)} reduction dims "
                f"but {len(reduce_args)} reduction variables"
            )
        self._buf = buf
        self._args = tuple(args)
        self._body = body
        self._reduce_dims = tuple(as_expr(d) for d in reduce_dims)
        self._reduce_args = tuple(reduce_args)

    @classmethod
    def expanded(cls, name: str, dims: Sequence[DimArgLike], dtype: PrimitiveType = F32,
                 resolver: Optional[Resolver] = None) -> "Tensor":
        """Tensor whose contents are already materialized (no body, no lowering obligation)."""
        extents, args = unpack_dim_args(dims, resolver)
        return cls(Buf(name, extents, dtype, resolver=resolver), args)

    # --- accessors ---

    @property
    def name(self) -> str:
        return self._buf.name

    @property
    def buf(self) -> Buf:
        return self._buf

    @property
    def dtype(self) -> PrimitiveType:
        return self._buf.dtype

    @property
    def body(self) -> Optional[ExprIR]:
        return self._body

    @property
    def dims(self) -> Tuple[ExprIR, ...]:
        return tuple(self._buf.dims)

    @property
    def args(self) -> Tuple[VarIR, ...]:
        return self._args

    @property
    def reduce_dims(self) -> Tuple[ExprIR, ...]:
        return self._reduce_dims

    @property
    def reduce_args(self) -> Tuple[VarIR, ...]:
        return self._reduce_args

    def ndim(self) -> int:
        return len(self._args)

    def reduce_ndim(self) -> int:
        return len(self._reduce_args)

    def dim(self, index: int) -> ExprIR:
        return self._buf.dim(index)

    def arg(self, index: int) -> VarIR:
        return self._args[index]

    def reduce_dim(self, index: int) -> ExprIR:
        return self._reduce_dims[index]

    def reduce_arg(self, index: int) -> VarIR:
        return self._reduce_args[index]

    # --- indexed read ---

    def call(self, *indices: Union[ExprIR, int]) -> LoadIR:
        """Read this tensor's buffer at indices (one per output axis)."""
        if len(indices) == 1 and isinstance(indices[0], (list, tuple)):
            indices = tuple(indices[0])
        if len(indices) != self.ndim():
            raise MalformedInputError(
                f"call to tensor '{self.name}' with {len(indices)} indices, tensor has rank {self.ndim()}"
            )
        return LoadIR(self._buf, list(indices))

    def __getitem__(self, indices) -> LoadIR:
        if not isinstance(indices, tuple):
            indices = (indices,)
        return self.call(*indices)

    # --- lowering ---

    def element_stmt(self) -> StoreIR:
        """Innermost action: buf[args] = body under an always-true mask."""
        indices: List[ExprIR] = [self._args[i] for i in range(self._buf.ndim())]
        return StoreIR(self._buf, indices, self._body, IntImm(MASK_TRUE))

    def lower_to_stmt(self) -> StmtIR:
        """
        Expand into the full loop nest computing this tensor.

        Every call allocates a fresh statement tree; repeated calls return
        structurally equal trees.
        """
        s: StmtIR = self.element_stmt()

        # Without a functional body the axes are already expanded
        if self._body is None:
            return s

        if self.ndim() == 0 and self.reduce_ndim() == 0:
            return s

        init_expr = self._buf.initializer
        indices: List[ExprIR] = list(self._args)

        if self.reduce_ndim() > 0:
            # Reverse order: innermost loop first, outermost last
            for dim_index in reversed(range(self.reduce_ndim())):
                s = ForIR(self.reduce_arg(dim_index), IntImm(LOOP_START), self.reduce_dim(dim_index), s)
            if init_expr is not None:
                init = StoreIR(self._buf, indices, init_expr, IntImm(MASK_TRUE))
                s = BlockIR([init, s])

        for dim_index in reversed(range(self.ndim())):
            s = ForIR(self.arg(dim_index), IntImm(LOOP_START), self.dim(dim_index), s)

        logger.debug(
            f"Lowered tensor '{self.name}' to {self.ndim()} output loop(s) "
            f"and {self.reduce_ndim()} reduction loop(s)"
        )
        return s

    def __repr__(self) -> str:
        return (f"Tensor({self.name!r}, ndim={self.ndim()}, reduce_ndim={self.reduce_ndim()}, "
                f"dtype={self.dtype}, expanded={self._body is None})")


# ============================================================================
# Builders
# ============================================================================

def _callable_arity(func: Callable) -> Optional[Tuple[int, int]]:
    """
    (required, maximum) positional arity of func, or None when it takes *args
    (vector form: receives every index variable).
    """
    try:
        signature = inspect.signature(func)
    except (TypeError, ValueError):
        return None
    required = 0
    maximum = 0
    for param in signature.parameters.values():
        if param.kind == inspect.Parameter.VAR_POSITIONAL:
            return None
        if param.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD):
            maximum += 1
            if param.default is inspect.Parameter.empty:
                required += 1
    return required, maximum


def _check_arity(func: Callable, expected: int) -> None:
    arity = _callable_arity(func)
    if arity is None:
        return
    required, maximum = arity
    if not required <= expected <= maximum:
        raise MalformedInputError(f"mismatch between body and arg size ({required})")


def compute(name: str, dim_args: Sequence[DimArgLike], body_func: BodyFunc,
            resolver: Optional[Resolver] = None) -> Tensor:
    """
    Build a functional Tensor: one index variable per DimArg, body = body_func(*vars).

    body_func must accept exactly len(dim_args) positional index variables
    (or *args); otherwise MalformedInputError is raised before it is called.
    """
    _check_arity(body_func, len(dim_args))
    dims, args = unpack_dim_args(dim_args, resolver)
    body = as_expr(body_func(*args))
    buf = Buf(name, dims, body.dtype, resolver=resolver)
    logger.debug(f"compute '{name}': rank {len(dims)}, dtype {body.dtype}")
    return Tensor(buf, args, body)


ReduceSource = Union[Placeholder, Tensor, BodyFunc]


def _reduce_impl(name: str, dim_args: Sequence[DimArgLike], reducer: Reducer,
                 body_func: BodyFunc, reduce_args: Sequence[DimArgLike],
                 resolver: Optional[Resolver]) -> Tensor:
    dims, args = unpack_dim_args(dim_args, resolver)
    reduce_dims, reduce_vars = unpack_dim_args(reduce_args, resolver)
    body = as_expr(body_func(*args, *reduce_vars))
    buf = Buf(name, dims, body.dtype, initializer=reducer.initializer_for(body.dtype),
              resolver=resolver)
    reduce_body = reducer(buf, body, args, reduce_vars)
    logger.debug(
        f"reduce '{name}': rank {len(dims)}, {len(reduce_dims)} reduction axis(es), dtype {body.dtype}"
    )
    return Tensor(buf, args, reduce_body, reduce_dims, reduce_vars)


def reduce(name: str, dim_args: Sequence[DimArgLike], reducer: Reducer, source: ReduceSource,
           reduce_args: Sequence[DimArgLike], resolver: Optional[Resolver] = None) -> Tensor:
    """
    Build a reduction Tensor.

    At each output index the values read from `source` at (output vars +
    reduction vars) are folded with `reducer`. `source` is a Placeholder, a
    Tensor or a callable over all R + K index variables; its rank (or arity)
    must equal len(dim_args) + len(reduce_args).
    """
    expected = len(dim_args) + len(reduce_args)
    if isinstance(source, Placeholder):
        if source.ndim() != expected:
            raise MalformedInputError(f"mismatch between body and arg size ({source.ndim()})")
        return _reduce_impl(name, dim_args, reducer, lambda *p: source.load(*p), reduce_args, resolver)
    if isinstance(source, Tensor):
        if source.ndim() != expected:
            raise MalformedInputError(f"mismatch between body and arg size ({source.ndim()})")
        return _reduce_impl(name, dim_args, reducer, lambda *p: source.call(*p), reduce_args, resolver)
    if not callable(source):
        raise TypeError(f"reduce source must be a Placeholder, Tensor or callable, got {type(source).__name__}")
    _check_arity(source, expected)
    return _reduce_impl(name, dim_args, reducer, source, reduce_args, resolver)
