"""Utility registries with case-insensitive lookups."""

from typing import Any


class CaseInsensitiveRegistry(dict):
    """
    Name-to-object mapping whose lookups ignore case.

    Description:
        Keys keep the casing they were registered with, so iteration and
        error messages show the canonical name. Lookups (`[]`, :meth:`get`,
        `in`) accept any casing. Two names that differ only in case cannot
        both be registered. Unit type names in graph descriptions are
        resolved through such a registry.

    Attributes:
        _canonical (dict[str, str]): Lowercased key to registered key.

    """

    def __init__(self):
        super().__init__()
        self._canonical: dict[str, str] = {}

    @staticmethod
    def _fold(key: str) -> str:
        if not isinstance(key, str):
            msg = f"Registry keys must be strings, got {type(key)}."
            raise TypeError(msg)
        return key.lower()

    def get_original_key(self, key: str) -> str | None:
        """Return the registered spelling of `key`, or None if absent."""
        return self._canonical.get(self._fold(key))

    def __setitem__(self, key: str, value: Any):
        folded = self._fold(key)
        existing = self._canonical.get(folded)
        if existing is not None and existing != key:
            msg = f"Cannot register '{key}': it collides with existing key '{existing}'."
            raise KeyError(msg)
        super().__setitem__(key, value)
        self._canonical[folded] = key

    def __getitem__(self, key: str):
        orig = self.get_original_key(key)
        if orig is None:
            raise KeyError(key)
        return super().__getitem__(orig)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.get_original_key(key) is not None

    def get(self, key: str, default=None):
        orig = self.get_original_key(key)
        return default if orig is None else super().__getitem__(orig)

    def register(self, name: str, obj: Any):
        """
        Register `obj` under `name`.

        Raises:
            KeyError: If `name` is already registered in any casing.

        """
        if name in self:
            msg = f"Duplicate registry key (case-insensitive): {name}."
            raise KeyError(msg)
        self[name] = obj
