"""
Type System

Scalar element types for expressions and buffers.

Convention: dtype on IR expressions carries only the scalar precision (e.g. i32,
f32). Shapes live on buffers (Buf.dims) and in loop extents, never on dtypes.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Tuple

import numpy as np

from ..utils.config import DEFAULT_INT_TYPE, DEFAULT_FLOAT_TYPE


@dataclass(frozen=True)
class PrimitiveType:
    """
    Primitive scalar type (i32, i64, f32, f64, bool).

    Immutable; compared and hashed by name.
    """
    name: str

    @property
    def is_float(self) -> bool:
        return self.name in ("f32", "f64")

    @property
    def is_integral(self) -> bool:
        return self.name in ("i32", "i64", "bool")

    @property
    def numpy_dtype(self) -> np.dtype:
        return np.dtype(_NUMPY_NAMES[self.name])

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return self.name


# Common primitive types (All standard types as constants)
BOOL = PrimitiveType("bool")
I32 = PrimitiveType("i32")
I64 = PrimitiveType("i64")
F32 = PrimitiveType("f32")
F64 = PrimitiveType("f64")

_NUMPY_NAMES: Dict[str, str] = {
    "bool": "bool",
    "i32": "int32",
    "i64": "int64",
    "f32": "float32",
    "f64": "float64",
}

_BY_NAME: Dict[str, PrimitiveType] = {t.name: t for t in (BOOL, I32, I64, F32, F64)}

# Promotion lattice: the wider of two operand types wins
_PROMOTION_ORDER: Tuple[PrimitiveType, ...] = (BOOL, I32, I64, F32, F64)


def dtype_from_name(name: str) -> PrimitiveType:
    """Look up a primitive type by name ("i32", "f64", ...)."""
    if name not in _BY_NAME:
        raise ValueError(f"Unknown dtype: {name}")
    return _BY_NAME[name]


def promote_types(a: PrimitiveType, b: PrimitiveType) -> PrimitiveType:
    """Result type of a binary arithmetic operation on a and b."""
    if a == b:
        return a
    return max(a, b, key=_PROMOTION_ORDER.index)


def infer_literal_type(value: Any) -> PrimitiveType:
    """
    Infer the dtype for a Python literal.
    Integer default i32, float default f32.
    """
    if isinstance(value, (bool, np.bool_)):
        return BOOL
    if isinstance(value, (int, np.integer)):
        return dtype_from_name(DEFAULT_INT_TYPE)
    if isinstance(value, (float, np.floating)):
        return dtype_from_name(DEFAULT_FLOAT_TYPE)
    raise TypeError(f"Cannot infer dtype of literal {value!r} ({type(value).__name__})")


def min_value(dtype: PrimitiveType) -> Any:
    """Smallest representable value (identity of a max-reduction)."""
    if dtype.is_float:
        return float("-inf")
    if dtype == BOOL:
        return False
    return int(np.iinfo(dtype.numpy_dtype).min)


def max_value(dtype: PrimitiveType) -> Any:
    """Largest representable value (identity of a min-reduction)."""
    if dtype.is_float:
        return float("inf")
    if dtype == BOOL:
        return True
    return int(np.iinfo(dtype.numpy_dtype).max)


# ============================================================================
# Operator Enums
# ============================================================================

class BinaryOp(Enum):
    """Binary arithmetic operators - compile-time checked enum"""
    ADD = "+"
    SUB = "-"
    MUL = "*"
    DIV = "/"
    MOD = "%"
    MAX = "max"
    MIN = "min"


class CompareOp(Enum):
    """Comparison operators used by CompareSelectIR"""
    EQ = "=="
    NE = "!="
    LT = "<"
    LE = "<="
    GT = ">"
    GE = ">="
