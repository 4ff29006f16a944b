from __future__ import annotations

import logging

from .formatters import DagNetBannerFormatter, WarningFormatter

"""
Example usage of logging:

```python
from dagnet.utils.logging import get_logger

logger = get_logger("graph")
logger.debug("Inserting node 'fc1'")
```
"""


_LOGGER_NAME = "dagnet"


class DagNetStreamHandler(logging.StreamHandler):
    """Stream handler installed by :func:`get_logger` on each dagnet logger."""


def _formatter_for(name: str | None) -> logging.Formatter:
    if name == "warnings":
        return WarningFormatter()
    return DagNetBannerFormatter()


def get_logger(
    name: str | None = None,
    level: int = logging.INFO,
) -> logging.Logger:
    """
    Return a configured dagnet logger instance.

    Description:
        Each logger gets exactly one :class:`DagNetStreamHandler` and stops
        propagating. Handlers attached by other code (e.g. log capture in
        tests) are left alone and do not count as configuration.

    Args:
        name (str | None):
            Optional child logger name (e.g., "graph", "builder", "units").
        level (int):
            Logging level applied when the logger is first configured.

    Returns:
        logging.Logger:
            Configured logger instance.

    """
    logger_name = _LOGGER_NAME if name is None else f"{_LOGGER_NAME}.{name}"
    logger = logging.getLogger(logger_name)

    if not any(isinstance(h, DagNetStreamHandler) for h in logger.handlers):
        logger.setLevel(level)
        logger.propagate = False
        handler = DagNetStreamHandler()
        handler.setFormatter(_formatter_for(name))
        logger.addHandler(handler)

    return logger
