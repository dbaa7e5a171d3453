"""
Configuration constants to replace magic numbers throughout tensorexpr
"""

import os

# Loop construction constants
LOOP_START = 0  # Every lowered loop iterates [LOOP_START, extent)
MASK_TRUE = 1   # Always-true mask for stores/loads

# Default numeric types (integer default i32, float default f32)
DEFAULT_INT_TYPE = "i32"
DEFAULT_FLOAT_TYPE = "f32"

# Name given to an index variable whose DimArg carries no name
DEFAULT_DIM_NAME = "i"

# S-expression formatting constants
SEXPR_MAX_LINE = 100  # Break lines longer than this when pretty-printing
SEXPR_INDENT = "  "

# Dump IR after every pass (PassManager) unless overridden per call
DUMP_IR_ENV_VAR = "TENSOREXPR_DUMP_IR"


def dump_ir_enabled() -> bool:
    value = os.environ.get(DUMP_IR_ENV_VAR, "").lower()
    return value in ("1", "true", "yes", "on")
