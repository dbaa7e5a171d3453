"""
tensorexpr utilities package
"""

from .config import dump_ir_enabled

__all__ = ["dump_ir_enabled"]
