"""
DefId System

Identity for symbolic variables and buffer handles.

Design:
- DefId = (krate, index). Every VarIR (loop index, buffer base handle, size
  variable) gets a DefId when it is created; the name is for printing only.
- A Resolver hands out DefIds from a single monotonically increasing counter,
  so no two variables allocated by the same resolver ever share an id.
"""

from dataclasses import dataclass
from typing import Any, Optional
import itertools
import logging

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DefId:
    """
    Definition identifier.

    - krate: allocation domain (0 = user-built IR)
    - index: sequential index within the domain
    """
    krate: int
    index: int

    def __str__(self) -> str:
        """Format as krate:index"""
        return f"{self.krate}:{self.index}"

    def __deepcopy__(self, memo: Any) -> "DefId":
        return self


_LOCAL_CRATE = 0


def assert_defid(value: Any, *, allow_none: bool = True) -> None:
    """Raise if value is not DefId (and not None when allow_none)."""
    if value is None and allow_none:
        return
    if not isinstance(value, DefId):
        raise TypeError(f"defid must be DefId or None, got {type(value).__name__}: {value}")


class Resolver:
    """
    DefId allocator.

    Guarantee: indices are strictly increasing per resolver, so every fresh
    variable is distinct from every variable allocated before it.
    """

    def __init__(self, krate: int = _LOCAL_CRATE):
        self._krate = krate
        self._counter = itertools.count()

    def allocate_for_local(self, name: Optional[str] = None) -> DefId:
        """Allocate a DefId for a fresh variable. name is used for debug logging only."""
        defid = DefId(krate=self._krate, index=next(self._counter))
        if name is not None:
            logger.debug(f"Allocated DefId {defid} for '{name}'")
        return defid


_default_resolver = Resolver()


def default_resolver() -> Resolver:
    """Resolver used when IR is built without an explicit one."""
    return _default_resolver
