"""
Scoped IR Visitor - walks a statement tree while tracking which loop
variables are bound at each point.

Scope key is DefId; names are never used for lookup.
"""

from contextlib import contextmanager
from typing import Any, Dict, List, Optional

from ..shared.defid import DefId
from .nodes import (
    IRVisitor, IntImm, FloatImm, VarIR, BinaryOpIR, CompareSelectIR, CastIR, LoadIR,
    StoreIR, ForIR, BlockIR,
)


class ScopedIRVisitor(IRVisitor[None]):
    """
    Full-tree walker with a scope stack. Each ForIR opens a scope binding its
    loop variable for the duration of the body. Subclasses override the
    visit_* methods they care about and call super() to keep walking.
    """

    def __init__(self):
        self._scope_stack: List[Dict[DefId, Any]] = [{}]

    # =========================================================================
    # Scope Management API
    # =========================================================================

    @contextmanager
    def scope(self):
        """Context manager for entering/exiting a scope."""
        self._scope_stack.append({})
        try:
            yield
        finally:
            if len(self._scope_stack) > 1:
                self._scope_stack.pop()

    def set_var(self, defid: DefId, value: Any) -> None:
        """Set variable in current scope."""
        self._scope_stack[-1][defid] = value

    def get_var(self, defid: DefId) -> Optional[Any]:
        """Get variable from current scope or any parent scope."""
        for scope in reversed(self._scope_stack):
            if defid in scope:
                return scope[defid]
        return None

    def is_bound(self, defid: DefId) -> bool:
        return any(defid in scope for scope in self._scope_stack)

    # =========================================================================
    # Default traversal
    # =========================================================================

    def visit_int_imm(self, node: IntImm) -> None:
        return None

    def visit_float_imm(self, node: FloatImm) -> None:
        return None

    def visit_var(self, node: VarIR) -> None:
        return None

    def visit_binary_op(self, node: BinaryOpIR) -> None:
        node.lhs.accept(self)
        node.rhs.accept(self)

    def visit_compare_select(self, node: CompareSelectIR) -> None:
        node.lhs.accept(self)
        node.rhs.accept(self)
        node.true_value.accept(self)
        node.false_value.accept(self)

    def visit_cast(self, node: CastIR) -> None:
        node.src.accept(self)

    def visit_load(self, node: LoadIR) -> None:
        node.buf.accept(self)
        for index in node.indices:
            index.accept(self)
        node.mask.accept(self)

    def visit_store(self, node: StoreIR) -> None:
        node.buf.accept(self)
        for index in node.indices:
            index.accept(self)
        if node.value is not None:
            node.value.accept(self)
        node.mask.accept(self)

    def visit_for(self, node: ForIR) -> None:
        node.start.accept(self)
        node.stop.accept(self)
        with self.scope():
            self.set_var(node.var.defid, node.var)
            node.body.accept(self)

    def visit_block(self, node: BlockIR) -> None:
        for stmt in node.stmts:
            stmt.accept(self)
