"""
Dimension arguments

A DimArg pairs a loop extent with an optional name. Unpacking a sequence of
DimArgs allocates one fresh index variable per axis.
"""

from typing import List, Optional, Sequence, Tuple, Union

from ..shared.defid import Resolver, default_resolver
from ..shared.types import I32
from ..utils.config import DEFAULT_DIM_NAME
from .nodes import ExprIR, VarIR, as_expr


class DimArg:
    """
    One tensor axis or reduction axis: extent expression + optional name.

    The extent is not checked for sign; a zero or negative extent lowers to a
    loop that runs zero times.
    """
    __slots__ = ('dim', 'name_hint')

    def __init__(self, dim: Union[ExprIR, int], name_hint: Optional[str] = None):
        self.dim = as_expr(dim)
        self.name_hint = name_hint

    def __repr__(self) -> str:
        return f"DimArg({self.dim!r}, {self.name_hint!r})"


DimArgLike = Union[DimArg, ExprIR, int]


def as_dim_arg(value: DimArgLike) -> DimArg:
    """Accept bare extents (ints or expressions) where a DimArg is expected."""
    if isinstance(value, DimArg):
        return value
    return DimArg(value)


def unpack_dim_args(dim_args: Sequence[DimArgLike],
                    resolver: Optional[Resolver] = None) -> Tuple[List[ExprIR], List[VarIR]]:
    """
    Split DimArgs into parallel lists of extents and freshly allocated index
    variables, index-for-index. Each variable is distinct from every other.
    """
    resolver = resolver or default_resolver()
    dims: List[ExprIR] = []
    args: List[VarIR] = []
    for value in dim_args:
        dim_arg = as_dim_arg(value)
        dims.append(dim_arg.dim)
        args.append(VarIR(dim_arg.name_hint or DEFAULT_DIM_NAME, I32, resolver=resolver))
    return dims, args
