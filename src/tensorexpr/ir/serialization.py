"""
IR Serialization to S-Expressions
====================================

Converts IR trees to a canonical S-expression form for testing and debugging.

Uses structured sexpr (nested lists + sexpdata.Symbol for keywords; plain
str for names, which print quoted), then pretty-prints for readable output.

Example::

    (for "i" (int-imm 0 i32) (int-imm 4 i32)
      (for "j" (int-imm 0 i32) (int-imm 4 i32)
        (store "add" ((var "i") (var "j")) (binary-op + ...))))
"""

from typing import Any

import sexpdata

from ..utils.config import MASK_TRUE, SEXPR_INDENT, SEXPR_MAX_LINE
from .nodes import IntImm


def _pretty_dumps(sexpr: Any, indent: int = 0, indent_str: str = SEXPR_INDENT,
                  max_line: int = SEXPR_MAX_LINE) -> str:
    """
    Pretty-print structured sexpr. Keeps short forms on one line; breaks only when needed.
    """
    if sexpr is None:
        return "()"
    if isinstance(sexpr, (int, float)) and not isinstance(sexpr, bool):
        return str(sexpr)
    # Check Symbol before str (sexpdata.Symbol subclasses str)
    if isinstance(sexpr, sexpdata.Symbol):
        return sexpr.value()
    if isinstance(sexpr, str):
        escaped = sexpr.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    if isinstance(sexpr, list):
        if not sexpr:
            return "()"
        parts = [_pretty_dumps(e, indent + 1, indent_str, max_line) for e in sexpr]
        one_line = "(" + " ".join(parts) + ")"
        if len(one_line) <= max_line and "\n" not in one_line:
            return one_line
        prefix = indent_str * indent
        next_prefix = indent_str * (indent + 1)
        # First element on same line as ( to avoid orphan (; no space after (
        rest = "\n".join(next_prefix + p for p in parts[1:])
        inner = parts[0] + ("\n" + rest if rest else "")
        return f"({inner}\n{prefix})"
    return str(sexpr)


def serialize_ir(node: Any, include_defids: bool = False, include_dtypes: bool = False,
                 pretty: bool = True) -> str:
    """
    Serialize IR node to S-expression string.

    Args:
        node: IR node (expression, statement or Buf) to serialize
        include_defids: Append the DefId to every variable
        include_dtypes: Append :dtype to every expression
        pretty: Use pretty-printed format (default True). Set False for compact single-line.
    """
    serializer = IRSerializer(include_defids=include_defids, include_dtypes=include_dtypes)
    sexpr = serializer.serialize_to_sexpr(node)
    if pretty:
        return _pretty_dumps(sexpr)
    return sexpdata.dumps(sexpr)


class IRSerializer:
    """
    IR to structured S-expression serializer.

    Dispatches on `_serialize_<ClassName>`; unknown nodes fall back to a generic form.
    """

    def __init__(self, include_defids: bool = False, include_dtypes: bool = False):
        self.include_defids = include_defids
        self.include_dtypes = include_dtypes

    def _sym(self, s: str) -> Any:
        """Convert string to symbol (no quotes in output)."""
        return sexpdata.Symbol(s)

    def serialize_to_sexpr(self, node: Any) -> Any:
        """Serialize any IR node to structured sexpr (list/Symbol/str)."""
        if node is None:
            return [self._sym("nil")]
        method = getattr(self, f"_serialize_{type(node).__name__}", None)
        if method is not None:
            return method(node)
        return self._serialize_generic(node)

    def serialize(self, node: Any) -> str:
        return _pretty_dumps(self.serialize_to_sexpr(node))

    def _serialize_generic(self, node: Any) -> list:
        return [self._sym(type(node).__name__), self._sym("...")]

    def _add_dtype(self, node: Any, core: list) -> list:
        if not self.include_dtypes:
            return core
        return core + [self._sym(":dtype"), self._sym(node.dtype.name)]

    def _indices(self, indices) -> list:
        return [self.serialize_to_sexpr(i) for i in indices]

    def _with_mask(self, node: Any, core: list) -> list:
        mask = node.mask
        if isinstance(mask, IntImm) and mask.value == MASK_TRUE:
            return core
        return core + [self._sym(":mask"), self.serialize_to_sexpr(mask)]

    # === Expressions ===

    def _serialize_IntImm(self, node) -> list:
        value = node.value
        # Store bool as symbol to avoid sexpdata's bool conversion
        if isinstance(value, bool):
            value = self._sym("true" if value else "false")
        return [self._sym("int-imm"), value, self._sym(node.dtype.name)]

    def _serialize_FloatImm(self, node) -> list:
        return [self._sym("float-imm"), node.value, self._sym(node.dtype.name)]

    def _serialize_VarIR(self, node) -> list:
        core = [self._sym("var"), node.name]
        if self.include_defids:
            core.append([node.defid.krate, node.defid.index])
        return self._add_dtype(node, core)

    def _serialize_BinaryOpIR(self, node) -> list:
        core = [
            self._sym("binary-op"),
            self._sym(node.operator.value),
            self.serialize_to_sexpr(node.lhs),
            self.serialize_to_sexpr(node.rhs),
        ]
        return self._add_dtype(node, core)

    def _serialize_CompareSelectIR(self, node) -> list:
        core = [
            self._sym("compare-select"),
            self._sym(node.operator.value),
            self.serialize_to_sexpr(node.lhs),
            self.serialize_to_sexpr(node.rhs),
            self.serialize_to_sexpr(node.true_value),
            self.serialize_to_sexpr(node.false_value),
        ]
        return self._add_dtype(node, core)

    def _serialize_CastIR(self, node) -> list:
        return [self._sym("cast"), self._sym(node.dtype.name), self.serialize_to_sexpr(node.src)]

    def _serialize_LoadIR(self, node) -> list:
        core = [self._sym("load"), node.buf.name, self._indices(node.indices)]
        return self._add_dtype(node, self._with_mask(node, core))

    # === Statements ===

    def _serialize_StoreIR(self, node) -> list:
        core = [
            self._sym("store"),
            node.buf.name,
            self._indices(node.indices),
            self.serialize_to_sexpr(node.value),
        ]
        return self._with_mask(node, core)

    def _serialize_ForIR(self, node) -> list:
        var = node.var.name
        if self.include_defids:
            var = [var, [node.var.defid.krate, node.var.defid.index]]
        return [
            self._sym("for"),
            var,
            self.serialize_to_sexpr(node.start),
            self.serialize_to_sexpr(node.stop),
            self.serialize_to_sexpr(node.body),
        ]

    def _serialize_BlockIR(self, node) -> list:
        return [self._sym("block")] + [self.serialize_to_sexpr(s) for s in node.stmts]

    # === Buffers ===

    def _serialize_Buf(self, node) -> list:
        core = [
            self._sym("buf"),
            node.name,
            [self.serialize_to_sexpr(d) for d in node.dims],
            self._sym(node.dtype.name),
        ]
        if node.initializer is not None:
            core.extend([self._sym(":init"), self.serialize_to_sexpr(node.initializer)])
        return core
