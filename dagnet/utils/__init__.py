"""Shared utilities: logging, errors, registries, and formatting helpers."""
