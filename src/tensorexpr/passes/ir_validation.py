"""
IR Validation Pass

Validates that a lowered statement tree is structurally well-formed and
ready for execution. This pass checks STRUCTURAL properties only:

1. Every Store/Load uses exactly one index per buffer axis
2. Every variable used is bound by an enclosing loop, is a buffer size
   variable, or was declared free on the context (the indices of a
   value-less store are exempt)
3. No loop rebinds a variable already bound by an enclosing loop

If this pass fails, it indicates a bug in lowering, not a user error.
"""

import logging
from typing import List, Optional, Set

from ..ir.buffer import Buf
from ..ir.nodes import StmtIR, VarIR, LoadIR, StoreIR, ForIR
from ..ir.scoped_visitor import ScopedIRVisitor
from ..ir.serialization import serialize_ir
from ..shared.defid import DefId
from .base import BasePass, LoweringContext
from .tensor_lowering import TensorLoweringPass

logger = logging.getLogger(__name__)

INTERNAL_ERROR_CODE = "E0999"


class _SizeVarCollector(ScopedIRVisitor):
    """Collects the DefIds of variables appearing in buffer extents."""

    def __init__(self):
        super().__init__()
        self.size_vars: Set[DefId] = set()
        self._seen_bufs: List[Buf] = []

    def visit_buf(self, node: Buf) -> None:
        if any(node is seen for seen in self._seen_bufs):
            return
        self._seen_bufs.append(node)
        collector = _VarCollector()
        for dim in node.dims:
            dim.accept(collector)
        if node.initializer is not None:
            node.initializer.accept(collector)
        self.size_vars.update(collector.defids)


class _VarCollector(ScopedIRVisitor):
    def __init__(self):
        super().__init__()
        self.defids: Set[DefId] = set()

    def visit_var(self, node: VarIR) -> None:
        self.defids.add(node.defid)


class IRValidationVisitor(ScopedIRVisitor):
    """Reports structural problems through ctx.reporter."""

    def __init__(self, ctx: LoweringContext, allowed_free: Set[DefId]):
        super().__init__()
        self.ctx = ctx
        self.allowed_free = allowed_free
        self.nodes_validated = 0

    def _report_error(self, message: str, node, help: Optional[str] = None) -> None:
        self.ctx.reporter.report_error(
            message,
            context=serialize_ir(node, pretty=False),
            code=INTERNAL_ERROR_CODE,
            help=help,
        )

    def visit_var(self, node: VarIR) -> None:
        self.nodes_validated += 1
        if not self.is_bound(node.defid) and node.defid not in self.allowed_free:
            self._report_error(
                f"variable '{node.name}' ({node.defid}) is used outside any loop binding it",
                node,
                help="pass runtime size variables and scalar parameters as free_vars",
            )

    def visit_load(self, node: LoadIR) -> None:
        self.nodes_validated += 1
        if len(node.indices) != node.buf.ndim():
            self._report_error(
                f"load from '{node.buf.name}' uses {len(node.indices)} indices, "
                f"buffer has rank {node.buf.ndim()}",
                node,
            )
        super().visit_load(node)

    def visit_store(self, node: StoreIR) -> None:
        self.nodes_validated += 1
        if len(node.indices) != node.buf.ndim():
            self._report_error(
                f"store into '{node.buf.name}' uses {len(node.indices)} indices, "
                f"buffer has rank {node.buf.ndim()}",
                node,
                help="lowering must index every buffer axis",
            )
        # Already-expanded tensor: indices name its axes but are never evaluated
        if node.value is None:
            return
        super().visit_store(node)

    def visit_for(self, node: ForIR) -> None:
        self.nodes_validated += 1
        if self.is_bound(node.var.defid):
            self._report_error(
                f"loop variable '{node.var.name}' ({node.var.defid}) is rebound inside its own loop",
                node.var,
            )
        super().visit_for(node)


class IRValidationPass(BasePass):
    """
    Validates the kernel root statement; returns it unchanged (read-only).
    Errors from this pass indicate lowering bugs, not user errors.
    """
    requires = [TensorLoweringPass]

    def run(self, stmt: Optional[StmtIR], ctx: LoweringContext) -> StmtIR:
        logger.debug("Starting IR validation")

        collector = _SizeVarCollector()
        stmt.accept(collector)
        allowed_free = collector.size_vars | {v.defid for v in ctx.free_vars}

        visitor = IRValidationVisitor(ctx, allowed_free)
        stmt.accept(visitor)

        if ctx.reporter.has_errors():
            logger.debug(f"IR validation failed: {visitor.nodes_validated} nodes validated")
        else:
            logger.debug(f"IR validation passed: {visitor.nodes_validated} nodes validated")

        return stmt
