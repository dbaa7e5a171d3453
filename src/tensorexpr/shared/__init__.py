"""
Shared components: dtypes, variable identity, errors.
"""

from .defid import DefId, Resolver, default_resolver
from .errors import (
    Error, ErrorReporter, TensorExprError, MalformedInputError, TensorExprImplementationError,
)
from .types import (
    PrimitiveType, BinaryOp, CompareOp,
    BOOL, I32, I64, F32, F64,
    dtype_from_name, promote_types, infer_literal_type,
)
