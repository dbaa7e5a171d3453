"""
Buffers

Buf is the backing store descriptor every Store/Load addresses. Placeholder is
the user-facing input buffer of a kernel.
"""

from typing import List, Optional, Sequence, TypeVar, Union

from ..shared.defid import Resolver
from ..shared.errors import MalformedInputError
from ..shared.types import PrimitiveType, F32, I64
from .nodes import IRNode, ExprIR, VarIR, LoadIR, IRVisitor, as_expr

T = TypeVar("T")


class Buf(IRNode):
    """
    Addressable backing store: a handle variable, a shape and an element dtype.

    `initializer` is the value an accumulator starts from; lowering stores it
    once per output index before any reduction-axis iteration.
    """
    __slots__ = ('base_handle', 'dims', 'dtype', 'initializer')

    def __init__(self, name: str, dims: Sequence[Union[ExprIR, int]], dtype: PrimitiveType,
                 initializer: Optional[ExprIR] = None, resolver: Optional[Resolver] = None):
        self.base_handle = VarIR(name, I64, resolver=resolver)
        self.dims = [as_expr(d) for d in dims]
        self.dtype = dtype
        self.initializer = initializer

    @property
    def name(self) -> str:
        return self.base_handle.name

    def ndim(self) -> int:
        return len(self.dims)

    def dim(self, index: int) -> ExprIR:
        return self.dims[index]

    def accept(self, visitor: 'IRVisitor[T]') -> 'T':
        return visitor.visit_buf(self)


def _flatten_indices(indices: Sequence) -> List:
    # placeholder.load([i, j]) and placeholder.load(i, j) are both accepted
    if len(indices) == 1 and isinstance(indices[0], (list, tuple)):
        return list(indices[0])
    return list(indices)


class Placeholder:
    """Named input buffer of a kernel, exposing indexed reads."""

    def __init__(self, name: str, dtype: PrimitiveType = F32,
                 dims: Sequence[Union[ExprIR, int]] = (), resolver: Optional[Resolver] = None):
        self.data = Buf(name, dims, dtype, resolver=resolver)

    @property
    def name(self) -> str:
        return self.data.name

    @property
    def dtype(self) -> PrimitiveType:
        return self.data.dtype

    def ndim(self) -> int:
        return self.data.ndim()

    def dims(self) -> List[ExprIR]:
        return list(self.data.dims)

    def load(self, *indices: Union[ExprIR, int, Sequence]) -> LoadIR:
        """Read buf[indices]; the index count must equal the buffer rank."""
        flat = _flatten_indices(indices)
        if len(flat) != self.ndim():
            raise MalformedInputError(
                f"load from '{self.name}' with {len(flat)} indices, buffer has rank {self.ndim()}"
            )
        return LoadIR(self.data, flat)

    def __getitem__(self, indices) -> LoadIR:
        if not isinstance(indices, tuple):
            indices = (indices,)
        return self.load(*indices)

    def __repr__(self) -> str:
        return f"Placeholder({self.name!r}, {self.dtype}, ndim={self.ndim()})"
