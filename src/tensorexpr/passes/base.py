"""
Base Pass System

Passes transform or check a kernel's statement tree. All state a pass needs
(the tensors being lowered, diagnostics, results of earlier passes) lives on
the LoweringContext, not on the pass.
"""

import logging
from abc import ABC, abstractmethod
from collections import deque
from typing import Any, Dict, Iterable, List, Optional, Set, Type

from ..ir.nodes import StmtIR, VarIR
from ..shared.errors import ErrorReporter
from ..utils.config import dump_ir_enabled

logger = logging.getLogger(__name__)


class LoweringContext:
    """
    Single source of truth for one kernel lowering.

    - tensors: output tensors, lowered in this order
    - free_vars: variables allowed to appear unbound (runtime sizes, scalar params)
    - reporter: diagnostics collected by passes
    """

    def __init__(self, tensors: Iterable[Any], free_vars: Iterable[VarIR] = ()):
        self.tensors: List[Any] = list(tensors)
        self.free_vars: Set[VarIR] = set(free_vars)
        self.reporter: ErrorReporter = ErrorReporter()
        self._analysis_results: Dict[Type['BasePass'], Any] = {}

    def get_analysis(self, pass_class: Type['BasePass']) -> Any:
        """Get analysis results from a pass"""
        if pass_class not in self._analysis_results:
            raise RuntimeError(f"Analysis {pass_class.__name__} not available")
        return self._analysis_results[pass_class]

    def set_analysis(self, pass_class: Type['BasePass'], results: Any) -> None:
        """Store analysis results"""
        self._analysis_results[pass_class] = results


class BasePass(ABC):
    """
    Base class for all passes.

    - Explicit dependencies via `requires`
    - Pass results stored in LoweringContext (not in pass)
    - Input trees are never mutated; a transforming pass returns a new tree
    """
    requires: List[Type['BasePass']] = []

    @abstractmethod
    def run(self, stmt: Optional[StmtIR], ctx: LoweringContext) -> StmtIR:
        """Run pass; returns the (possibly new) root statement."""
        raise NotImplementedError


class PassManager:
    """
    Runs registered passes over one LoweringContext.

    A pass runs only after every registered pass it `requires`; among passes
    that are ready at the same time, registration order wins.
    """

    def __init__(self):
        self.passes: List[Type[BasePass]] = []

    def register_pass(self, pass_class: Type[BasePass]) -> None:
        self.passes.append(pass_class)

    def run_all(self, stmt: Optional[StmtIR], ctx: LoweringContext,
                dump_ir: Optional[bool] = None) -> StmtIR:
        """
        Run every pass in dependency order and return the final root statement.

        stmt is None when the first pass builds the tree. dump_ir prints the
        S-expression after each pass; it defaults to TENSOREXPR_DUMP_IR.
        """
        show = dump_ir_enabled() if dump_ir is None else dump_ir

        for pass_class in self.execution_order():
            logger.debug(f"Running {pass_class.__name__}")
            stmt = pass_class().run(stmt, ctx)
            if show:
                self._dump(pass_class.__name__, stmt)

        return stmt

    def execution_order(self) -> List[Type[BasePass]]:
        """Registered passes sorted so that dependencies come first (Kahn's algorithm)."""
        registered = set(self.passes)
        waiting_on = {p: set(p.requires) & registered for p in self.passes}
        dependents: Dict[Type[BasePass], List[Type[BasePass]]] = {p: [] for p in self.passes}
        for p in self.passes:
            for dep in waiting_on[p]:
                dependents[dep].append(p)

        ready = deque(p for p in self.passes if not waiting_on[p])
        order: List[Type[BasePass]] = []
        while ready:
            current = ready.popleft()
            order.append(current)
            for dependent in dependents[current]:
                waiting_on[dependent].discard(current)
                if not waiting_on[dependent]:
                    ready.append(dependent)

        if len(order) != len(self.passes):
            stuck = ", ".join(p.__name__ for p in self.passes if p not in order)
            raise RuntimeError(f"Circular dependency detected in passes: {stuck}")
        return order

    @staticmethod
    def _dump(pass_name: str, stmt: Optional[StmtIR]) -> None:
        from ..ir.serialization import serialize_ir
        rule = "=" * 80
        print(f"\n{rule}\nAfter {pass_name}:\n{rule}\n{serialize_ir(stmt)}\n{rule}\n")
