"""Logging formatter implementations for dagnet outputs."""

import logging
import os
import sys
import textwrap
from datetime import datetime
from pathlib import Path


class DagNetFormatter(logging.Formatter):
    """Single-line log formatter with timestamp, level, and source context."""

    def format(self, record: logging.LogRecord) -> str:
        """
        Format a :class:`logging.LogRecord` into a single-line message.

        Args:
            record (logging.LogRecord): Log record to format.

        Returns:
            str: Formatted log line.

        """
        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        level = record.levelname.ljust(8)
        location = f"{record.module}:{record.lineno}"
        message = record.getMessage()

        return f"[{timestamp}] {level} {location} | {message}"


class _BannerMixin:
    """Shared helpers for banner-style formatter implementations."""

    max_width: int = 88

    def _wrap(self, text: str, *, indent: int = 2) -> list[str]:
        """
        Wrap text to the configured banner width, preserving explicit newlines.

        Args:
            text (str): Message to wrap.
            indent (int): Spaces to indent each wrapped line.

        Returns:
            list[str]: Wrapped and indented lines.

        """
        pad = " " * indent
        width = self.max_width - 2 * indent
        result: list[str] = []
        for line in text.split("\n"):
            if not line.strip():
                result.append(pad)
                continue
            leading = line[: len(line) - len(line.lstrip())]
            result.extend(
                pad + leading + part
                for part in textwrap.wrap(
                    line.strip(),
                    width=max(8, width - len(leading)),
                )
            )
        return result

    def _supports_color(self) -> bool:
        """Return True if ANSI color output is supported."""
        return sys.stderr.isatty() and os.environ.get("TERM") not in (None, "dumb")

    def _color(self, text: str, *, code: int) -> str:
        """Wrap text using ANSI codes when available."""
        if not self._supports_color():
            return text
        return f"\033[{code}m{text}\033[0m"

    def _separator(self, label: str | None = None) -> str:
        """Return a banner separator line optionally labeled with `label`."""
        if label:
            core = f" {label} "
            side = (self.max_width - len(core)) // 2
            return "─" * side + core + "─" * (self.max_width - side - len(core))
        return "─" * self.max_width


class DagNetBannerFormatter(DagNetFormatter, _BannerMixin):
    """
    Banner-style formatter for standard dagnet logs.

    Label format:
        "{LEVEL}" or "{LEVEL} - {custom_title_desc}"

    Body format:
        [timestamp] module:lineno   # optional
        message
    """

    def __init__(self, *, max_width: int = 88) -> None:
        super().__init__()
        self.max_width = max_width

    def format(self, record: logging.LogRecord) -> str:
        """
        Format a :class:`logging.LogRecord` into a banner block.

        Args:
            record (logging.LogRecord): Log record to format.

        Returns:
            str: Multi-line banner string.

        """
        level = record.levelname

        # Optional custom title_desc:
        #   logger.info("msg", extra={"title_desc": "GraphBuilder"})
        custom = getattr(record, "title_desc", None)
        title_desc = f"{level} - {custom}" if custom else level

        # Optional timestamp + location line
        #   logger.info("msg", extra={"omit_origin": True})
        omit_origin = getattr(record, "omit_origin", False)
        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        origin = f"[{timestamp}] {record.module}:{record.lineno}"

        lines: list[str] = [self._separator(title_desc)]
        if not omit_origin:
            lines.extend(self._wrap(origin, indent=1))
        lines.extend(self._wrap(record.getMessage(), indent=1))
        lines.append(self._separator())
        return "\n".join(lines)


class WarningFormatter(DagNetFormatter, _BannerMixin):
    """
    Formatter for dagnet warnings using a banner-style layout.

    Separator lines are colored red when supported by the terminal.
    """

    def __init__(self, *, max_width: int = 88) -> None:
        super().__init__()
        self.max_width = max_width

    @staticmethod
    def _short_location(filename: str) -> str:
        """Return a shortened filename for display."""
        return Path(filename).name

    def format(self, record: logging.LogRecord) -> str:
        """
        Format a warning log record.

        Expected `record.extra` fields:
            - warning_category
            - warning_filename
            - warning_lineno
            - warning_message
            - warning_hints

        Args:
            record (logging.LogRecord): Log record to format.

        Returns:
            str: Banner-rendered warning string.

        """
        category = getattr(record, "warning_category", UserWarning)
        filename = getattr(record, "warning_filename", record.pathname)
        lineno = getattr(record, "warning_lineno", record.lineno)
        message = getattr(record, "warning_message", record.getMessage())
        hints = getattr(record, "warning_hints", None)

        lines: list[str] = [
            self._color(self._separator(category.__name__), code=31),
            f" Location: {self._short_location(filename)}:{lineno}",
            "",
        ]
        lines.extend(self._wrap(message, indent=1))

        if hints:
            lines.append("")
            hint_list = [hints] if isinstance(hints, str) else list(hints)
            for hint in hint_list:
                lines.extend(self._wrap(hint, indent=1))

        lines.append(self._color(self._separator(), code=31))
        return "\n".join(lines)
