"""
Lowering Driver

Orchestrates the passes that turn a kernel's output tensors into one
validated loop-nest statement.
"""

import logging
from typing import Iterable, List, Optional

from ..ir.nodes import StmtIR, VarIR
from ..passes.base import LoweringContext, PassManager
from ..passes.ir_validation import IRValidationPass
from ..passes.tensor_lowering import TensorLoweringPass
from ..shared.errors import TensorExprImplementationError

logger = logging.getLogger(__name__)


class LoweringResult:
    """Lowering result"""
    def __init__(
        self,
        stmt: Optional[StmtIR] = None,
        ctx: Optional[LoweringContext] = None,
        success: bool = False
    ):
        self.stmt = stmt
        self.ctx = ctx
        self.success = success

    def has_errors(self) -> bool:
        """True if lowering reported errors."""
        if self.ctx is not None:
            return self.ctx.reporter.has_errors()
        return not self.success

    def get_errors(self) -> List[str]:
        if self.ctx is not None and self.ctx.reporter.has_errors():
            return [self.ctx.reporter.format_all_errors(color=False)]
        return []


class LoweringDriver:
    """
    Lowering driver.

    Pass order:
    1. TensorLoweringPass (tensors -> root block of loop nests)
    2. IRValidationPass (structural checks, read-only)
    """

    def __init__(self):
        self.pass_manager = PassManager()
        self._register_passes()

    def _register_passes(self) -> None:
        self.pass_manager.register_pass(TensorLoweringPass)
        self.pass_manager.register_pass(IRValidationPass)

    def lower(self, tensors: Iterable, free_vars: Iterable[VarIR] = (),
              dump_ir: Optional[bool] = None) -> LoweringResult:
        """Run all passes; diagnostics are reported on the result, not raised."""
        ctx = LoweringContext(tensors, free_vars)
        stmt = self.pass_manager.run_all(None, ctx, dump_ir=dump_ir)
        success = not ctx.reporter.has_errors()
        logger.debug(f"Lowered kernel with {len(ctx.tensors)} tensor(s): success={success}")
        return LoweringResult(stmt=stmt, ctx=ctx, success=success)


def lower_kernel(tensors: Iterable, free_vars: Iterable[VarIR] = (),
                 dump_ir: Optional[bool] = None) -> StmtIR:
    """Lower tensors to one root statement; raise if validation reports errors."""
    result = LoweringDriver().lower(tensors, free_vars, dump_ir=dump_ir)
    if not result.success:
        raise TensorExprImplementationError(
            result.ctx.reporter.format_all_errors(color=False), error_code="E0999"
        )
    return result.stmt
