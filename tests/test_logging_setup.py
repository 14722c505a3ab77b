"""Tests for logging configuration."""

import io
import logging

import pytest

from descriptor_engine.lib import logging_setup
from descriptor_engine.lib.logging_setup import (
    LEVEL_ENV_VAR,
    LOGGER_NAME,
    configure_logging,
    get_logger,
    resolve_level,
)


@pytest.fixture
def pkg_logger():
    logger = logging.getLogger(LOGGER_NAME)
    level = logger.level
    yield logger
    logger.setLevel(level)
    if logging_setup._handler is not None:
        logging_setup._handler.setStream(io.StringIO())


@pytest.mark.parametrize(
    "level, expected",
    [
        ("debug", logging.DEBUG),
        (" Info ", logging.INFO),
        ("40", logging.ERROR),
        (logging.CRITICAL, logging.CRITICAL),
        ("LOUD", logging.WARNING),
    ],
)
def test_resolve_level(level, expected):
    assert resolve_level(level) == expected


def test_level_from_environment(monkeypatch):
    monkeypatch.setenv(LEVEL_ENV_VAR, "ERROR")
    assert resolve_level() == logging.ERROR
    monkeypatch.delenv(LEVEL_ENV_VAR)
    assert resolve_level() == logging.WARNING


def test_repeated_configuration_keeps_one_handler(pkg_logger):
    first = io.StringIO()
    second = io.StringIO()
    configure_logging("INFO", stream=first)
    configure_logging("DEBUG", stream=second)
    stream_handlers = [h for h in pkg_logger.handlers if type(h) is logging.StreamHandler]
    assert len(stream_handlers) == 1
    assert pkg_logger.level == logging.DEBUG
    assert not pkg_logger.propagate

    get_logger("descriptor_engine.lib.normalizer").debug("loaded %d tables", 3)
    assert first.getvalue() == ""
    assert "DEBUG [descriptor_engine.lib.normalizer:" in second.getvalue()
    assert "loaded 3 tables" in second.getvalue()


def test_records_below_level_are_dropped(pkg_logger):
    stream = io.StringIO()
    configure_logging("WARNING", stream=stream)
    get_logger("descriptor_engine.lib.tables").info("quiet")
    get_logger("descriptor_engine.lib.tables").warning("loud")
    assert stream.getvalue() == "WARNING [descriptor_engine.lib.tables] loud\n"
