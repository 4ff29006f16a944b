"""Unit tests for dagnet.utils.logging and error utilities."""

import logging

import pytest

from dagnet.utils.errors import (
    DagNetError,
    DatasetError,
    ErrorMode,
    GraphConfigurationError,
    GraphInitializationError,
    GraphStateError,
    SampleLoadError,
    UnitError,
    UnitInputError,
)
from dagnet.utils.logging import catch_warnings, get_logger, warn
from dagnet.utils.logging.formatters import DagNetBannerFormatter, WarningFormatter
from dagnet.utils.logging.logger import DagNetStreamHandler


def _own_handlers(logger):
    return [h for h in logger.handlers if isinstance(h, DagNetStreamHandler)]


# ---------------------------------------------------------------------
# Loggers
# ---------------------------------------------------------------------
@pytest.mark.unit
def test_get_logger_creates_configured_child_loggers():
    """Test logger naming and one-time handler configuration."""
    logger = get_logger("graph")
    assert logger.name == "dagnet.graph"
    own = _own_handlers(logger)
    assert len(own) == 1
    assert isinstance(own[0].formatter, DagNetBannerFormatter)
    assert not logger.propagate

    assert get_logger("graph") is logger
    assert _own_handlers(logger) == own
    assert get_logger().name == "dagnet"
    assert isinstance(_own_handlers(get_logger("warnings"))[0].formatter, WarningFormatter)


@pytest.mark.unit
def test_get_logger_ignores_foreign_handlers():
    """Test that handlers attached by other code do not count as configuration."""
    logger = logging.getLogger("dagnet.foreign_handler_check")
    foreign = logging.NullHandler()
    logger.addHandler(foreign)
    try:
        assert get_logger("foreign_handler_check") is logger
        assert len(_own_handlers(logger)) == 1
        assert foreign in logger.handlers
    finally:
        logger.removeHandler(foreign)


@pytest.mark.unit
def test_banner_formatter_renders_message():
    """Test the banner layout of a log record."""
    record = logging.LogRecord("dagnet.graph", logging.INFO, __file__, 10, "Inserted node 'fc1'", None, None)
    text = DagNetBannerFormatter(max_width=60).format(record)
    lines = text.split("\n")
    assert "INFO" in lines[0]
    assert any("Inserted node 'fc1'" in line for line in lines)
    assert all(len(line) <= 60 for line in lines)


@pytest.mark.unit
def test_warning_formatter_renders_hints():
    """Test that warning hints are part of the rendered block."""
    record = logging.LogRecord("dagnet.warnings", logging.WARNING, __file__, 10, "Seed is zero", None, None)
    record.warning_hints = ["Pass a seed."]
    text = WarningFormatter().format(record)
    assert "UserWarning" in text
    assert "Seed is zero" in text
    assert "Pass a seed." in text


# ---------------------------------------------------------------------
# Warnings
# ---------------------------------------------------------------------
@pytest.mark.unit
def test_catch_warnings_intercepts():
    """Test that warnings inside the context are captured, not emitted."""
    with catch_warnings() as caught:
        warn("first problem", hints="fix it")
        warn("second problem", category=RuntimeWarning)
    assert len(caught) == 2
    assert caught.messages == ["first problem", "second problem"]
    assert caught.match("second")
    assert not caught.match("third")


@pytest.mark.unit
def test_warn_outside_context_logs(caplog):
    """Test that warnings outside an interceptor go through the warnings logger."""
    logger = get_logger("warnings")
    logger.addHandler(caplog.handler)
    try:
        warn("visible problem")
    finally:
        logger.removeHandler(caplog.handler)
    assert any(r.getMessage() == "visible problem" for r in caplog.records)


# ---------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------
@pytest.mark.unit
def test_error_hierarchy():
    """Test the exception hierarchy and default messages."""
    for exc_cls in (GraphConfigurationError, GraphInitializationError, GraphStateError, UnitError, DatasetError):
        assert issubclass(exc_cls, DagNetError)
    assert issubclass(UnitInputError, UnitError)
    assert issubclass(SampleLoadError, DatasetError)
    assert issubclass(GraphStateError, RuntimeError)

    err = GraphConfigurationError(node_name="fc1")
    assert err.node_name == "fc1"
    assert "fc1" in str(err)
    assert GraphInitializationError().node_name is None
    assert "feed_forward" in str(GraphStateError(method="feed_forward"))


@pytest.mark.unit
def test_error_mode_values():
    """Test that ErrorMode members compare equal to their string values."""
    assert ErrorMode("raise") is ErrorMode.RAISE
    assert ErrorMode.IGNORE == "ignore"
    assert [m.value for m in ErrorMode] == ["raise", "warn", "ignore"]
