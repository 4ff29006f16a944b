"""Data formatting helpers for normalizing loosely-typed config values."""

from collections.abc import Sequence
from typing import Any


def ensure_list(x: Any) -> list[Any]:
    """
    Ensure that the input is returned as a list.

    - None: return []
    - list: return itself (unchanged)
    - scalar (str, int, float, bool, dict, etc.): return wrapped in a list
    - any other sequence (tuple, range): return converted to list

    Args:
        x (Any): Input value.

    Returns:
        list[Any]: List representation of `x`.

    """
    if x is None:
        return []

    if isinstance(x, list):
        return x

    if isinstance(x, (str, bytes, int, float, bool, dict)):
        return [x]

    if isinstance(x, Sequence):
        return list(x)

    return [x]


def unique_in_order(values: Sequence[Any]) -> list[Any]:
    """
    Drop repeated entries from `values`, keeping the first occurrence of each.

    Args:
        values (Sequence[Any]): Hashable values.

    Returns:
        list[Any]: Values in their original order without duplicates.

    """
    seen: set[Any] = set()
    out: list[Any] = []
    for v in values:
        if v in seen:
            continue
        seen.add(v)
        out.append(v)
    return out


def format_shape(shape: Sequence[int] | None) -> str:
    """Render a buffer shape as `(b, x, y, c)`, or `?` when unknown."""
    if shape is None:
        return "?"
    return "(" + ", ".join(str(int(s)) for s in shape) + ")"
