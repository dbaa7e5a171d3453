"""
Reducers

A Reducer defines how a reduction accumulates across its reduction axes:
an initializer for the accumulator and an interaction combining the current
accumulator value with the next per-iteration value.
"""

from typing import Callable, Sequence, Union

from ..shared.types import PrimitiveType, F32, min_value, max_value
from .buffer import Buf
from .nodes import ExprIR, IntImm, FloatImm, LoadIR, VarIR, as_expr, cast, make_imm, maximum, minimum

Interaction = Callable[[ExprIR, ExprIR], ExprIR]


class Reducer:
    """
    initializer: accumulator start value.
    interaction(accumulator, value): combined value written back to the accumulator.
    """

    def __init__(self, initializer: Union[ExprIR, int, float], interaction: Interaction):
        self.initializer = as_expr(initializer)
        self._interaction = interaction

    def initializer_for(self, dtype: PrimitiveType) -> ExprIR:
        """Initializer in the accumulator's dtype (immediates are re-typed, not cast)."""
        if isinstance(self.initializer, (IntImm, FloatImm)):
            return make_imm(self.initializer.value, dtype)
        return cast(self.initializer, dtype)

    def combine(self, accumulator: ExprIR, value: ExprIR) -> ExprIR:
        return self._interaction(accumulator, value)

    def __call__(self, buf: Buf, body: ExprIR, output_args: Sequence[VarIR],
                 reduce_args: Sequence[VarIR]) -> ExprIR:
        """
        Per-iteration update of the accumulator at buf[output_args].

        reduce_args are the axes folded by the enclosing loops; they only appear
        inside `body`.
        """
        accumulator = LoadIR(buf, list(output_args))
        return self.combine(accumulator, cast(body, buf.dtype))


class Sum(Reducer):
    def __init__(self):
        super().__init__(0, lambda a, b: a + b)


class Product(Reducer):
    def __init__(self):
        super().__init__(1, lambda a, b: a * b)


class Maximum(Reducer):
    """max-reduction; the initializer is the smallest value of the accumulator dtype."""

    def __init__(self, dtype: PrimitiveType = F32):
        super().__init__(make_imm(min_value(dtype), dtype), maximum)

    def initializer_for(self, dtype: PrimitiveType) -> ExprIR:
        return make_imm(min_value(dtype), dtype)


class Minimum(Reducer):
    """min-reduction; the initializer is the largest value of the accumulator dtype."""

    def __init__(self, dtype: PrimitiveType = F32):
        super().__init__(make_imm(max_value(dtype), dtype), minimum)

    def initializer_for(self, dtype: PrimitiveType) -> ExprIR:
        return make_imm(max_value(dtype), dtype)
