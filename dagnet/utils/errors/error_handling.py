"""Lookup behavior when a requested graph element is absent."""

from enum import Enum


class ErrorMode(str, Enum):
    """
    How a lookup reports a missing element.

    Used by :meth:`ComputeGraph.get_node`: `RAISE` raises `KeyError`, `WARN`
    emits a warning and returns None, `IGNORE` silently returns None.
    """

    RAISE = "raise"
    WARN = "warn"
    IGNORE = "ignore"
