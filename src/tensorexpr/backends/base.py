"""
Backend Interface

A backend executes a lowered statement tree. Backends trust the IR they are
given (run IRValidationPass first); they do not re-analyze it.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import numpy as np

from ..ir.nodes import ExprIR, StmtIR, VarIR


class ExecutionResult:
    """Execution result: output buffers by name, or the error that stopped execution."""

    def __init__(
        self,
        buffers: Optional[Dict[str, np.ndarray]] = None,
        error: Optional[Exception] = None,
    ):
        self.buffers = buffers if buffers is not None else {}
        self.error = error

    @property
    def success(self) -> bool:
        """Whether execution succeeded (no error)"""
        return self.error is None

    @property
    def errors(self) -> list:
        if self.error:
            return [str(self.error)]
        return []

    def __getitem__(self, name: str) -> np.ndarray:
        return self.buffers[name]


class Backend(ABC):
    """Backend interface: all backends implement the same entry points."""

    @abstractmethod
    def execute(
        self,
        stmt: StmtIR,
        buffers: Optional[Dict[str, np.ndarray]] = None,
        var_values: Optional[Dict[VarIR, Any]] = None,
    ) -> ExecutionResult:
        """
        Execute a statement tree.

        buffers: input (and optionally preallocated output) arrays by buffer name
        var_values: values for free variables (runtime sizes, scalar parameters)
        """
        raise NotImplementedError

    @abstractmethod
    def execute_expression(
        self,
        expr: ExprIR,
        var_values: Optional[Dict[VarIR, Any]] = None,
    ) -> Any:
        """Evaluate a single expression."""
        raise NotImplementedError
