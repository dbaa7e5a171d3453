"""
Diagnostics and exceptions.

Builders raise MalformedInputError at the call site. Passes never raise for
problems they find in a statement tree; they report Error records to the
context's ErrorReporter and the driver decides what to do with them.
"""

import os
import sys
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple


# ---------------------------------------------------------------------------
# Terminal styling
# ---------------------------------------------------------------------------

_ANSI: Dict[str, str] = {
    "bold": "\033[1m",
    "red": "\033[31m",
    "blue": "\033[34m",
    "cyan": "\033[36m",
}
_ANSI_RESET = "\033[0m"

# TENSOREXPR_COLOR=never turns styling off even on a terminal
_COLOR_OFF_VALUES = ("0", "false", "no", "never")


def _color_default() -> bool:
    if "NO_COLOR" in os.environ and os.environ["NO_COLOR"]:
        return False
    if os.environ.get("TENSOREXPR_COLOR", "").lower() in _COLOR_OFF_VALUES:
        return False
    return sys.stderr.isatty()


def _paint(text: str, styles: Tuple[str, ...], enabled: bool) -> str:
    if not enabled or not styles:
        return text
    return "".join(_ANSI[s] for s in styles) + text + _ANSI_RESET


# ---------------------------------------------------------------------------
# Diagnostics
# ---------------------------------------------------------------------------

@dataclass
class Error:
    """
    Diagnostic produced by a pass.

    `context` is the compact S-expression of the offending node (IR has no
    source text to point into).
    """
    message: str
    context: Optional[str] = None
    code: Optional[str] = None
    help: Optional[str] = None
    note: Optional[str] = None

    def render(self, color: bool = False) -> str:
        """
        Plain rendering::

            error[E0999]: store into 'C' uses 1 indices, buffer has rank 2
             --> (store "C" ((var "i")) (var "x"))
              = help: lowering must index every buffer axis
        """
        head = "error" + (f"[{self.code}]" if self.code else "")
        lines = [_paint(head, ("bold", "red"), color) + _paint(f": {self.message}", ("bold",), color)]
        if self.context:
            lines.append(_paint(" --> ", ("bold", "blue"), color) + self.context)
        for label, text in (("help", self.help), ("note", self.note)):
            if text:
                lines.append(_paint("  = ", ("bold", "cyan"), color)
                             + _paint(f"{label}: ", ("bold",), color) + text)
        return "\n".join(lines)


@dataclass
class ErrorReporter:
    """Collects diagnostics emitted while running passes, in report order."""
    errors: List[Error] = field(default_factory=list)

    def report_error(self, message: str, context: Optional[str] = None, code: Optional[str] = None,
                     help: Optional[str] = None, note: Optional[str] = None) -> None:
        self.errors.append(Error(message, context, code, help, note))

    def has_errors(self) -> bool:
        return bool(self.errors)

    def format_error(self, error: Error, color: Optional[bool] = None) -> str:
        return error.render(_color_default() if color is None else color)

    def format_all_errors(self, color: Optional[bool] = None) -> str:
        """Every diagnostic followed by an `aborting due to N previous error(s)` line."""
        enabled = _color_default() if color is None else color
        blocks = [e.render(enabled) for e in self.errors]
        plural = "" if len(self.errors) == 1 else "s"
        summary = f": aborting due to {len(self.errors)} previous error{plural}"
        blocks.append(_paint("error", ("bold", "red"), enabled) + _paint(summary, ("bold",), enabled))
        return "\n\n".join(blocks)


# ============================================================================
# Exceptions
# ============================================================================

class TensorExprError(Exception):
    """Base exception for all tensorexpr errors"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class MalformedInputError(TensorExprError, ValueError):
    """
    Malformed input to an IR builder.

    Raised synchronously when the number of index variables a body callable
    (or an indexed read) expects does not match the number of dimensions
    supplied. No partial Tensor is ever returned.
    """


class TensorExprImplementationError(TensorExprError):
    """
    Error in the library itself, not in the caller's tensor definitions.

    Raised when a lowered statement fails structural validation or an
    execution backend meets a node kind it does not know.
    """

    def __init__(self, message: str, error_code: str = "E9999"):
        super().__init__(message)
        self.error_code = error_code

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"
