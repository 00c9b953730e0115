"""Tests for the shared logging configuration."""

import json
import logging

import pytest
import structlog

from nearby_ingest.logging_config import configure_logging


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    level = root.level
    yield
    for handler in list(root.handlers):
        if isinstance(handler.formatter, structlog.stdlib.ProcessorFormatter):
            root.removeHandler(handler)
    root.setLevel(level)
    structlog.reset_defaults()


def test_json_lines_for_structlog_and_stdlib(restore_logging, capsys):
    configure_logging(json_output=True, log_level="info")

    structlog.get_logger("nearby").info("search_cache_hit", key="v1:search:abc")
    logging.getLogger("uvicorn").warning("plain message")

    lines = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
    assert lines[0]["event"] == "search_cache_hit"
    assert lines[0]["key"] == "v1:search:abc"
    assert lines[0]["level"] == "info"
    assert lines[1]["event"] == "plain message"
    assert lines[1]["logger"] == "uvicorn"


def test_quiet_loggers_capped_at_warning(restore_logging):
    configure_logging(json_output=False, log_level="DEBUG", quiet_loggers=("httpx", "redis"))
    assert logging.getLogger().level == logging.DEBUG
    assert logging.getLogger("httpx").level == logging.WARNING
    assert logging.getLogger("redis").level == logging.WARNING
