"""
Tensor Lowering Pass

Lowers every output tensor of a kernel to its loop nest and joins the nests,
in registration order, under one root block.
"""

import logging
from typing import Dict, Optional

from ..ir.nodes import BlockIR, StmtIR
from .base import BasePass, LoweringContext

logger = logging.getLogger(__name__)


class TensorLoweringPass(BasePass):
    """
    Builds the kernel root statement from ctx.tensors.

    Analysis result: tensor name -> lowered statement of that tensor.
    """
    requires = []

    def run(self, stmt: Optional[StmtIR], ctx: LoweringContext) -> StmtIR:
        lowered: Dict[str, StmtIR] = {}
        stmts = []
        for tensor in ctx.tensors:
            tensor_stmt = tensor.lower_to_stmt()
            lowered[tensor.name] = tensor_stmt
            stmts.append(tensor_stmt)
        ctx.set_analysis(TensorLoweringPass, lowered)
        logger.debug(f"Lowered {len(stmts)} tensor(s) into the kernel root block")
        return BlockIR(stmts)
