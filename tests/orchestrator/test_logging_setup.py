"""
Logging Setup Tests.

============================================================
PURPOSE
============================================================
Tests for setup_logging: every json log line parses on its own.

============================================================
"""

import io
import json
import logging

import pytest

from orchestrator.core import JsonFormatter, setup_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers = handlers
    root.setLevel(level)


def test_json_lines_escape_quotes_and_newlines(restore_root_logger):
    stream = io.StringIO()
    setup_logging("INFO", "json", correlation_id="run-7", stream=stream)

    logging.getLogger("issuance_engine.valuation_service").info(
        'Issued "BioToken-Ara-macao"\nround=%d', 102
    )

    lines = stream.getvalue().splitlines()
    assert len(lines) == 1

    entry = json.loads(lines[0])
    assert entry["message"] == 'Issued "BioToken-Ara-macao"\nround=102'
    assert entry["level"] == "INFO"
    assert entry["logger"] == "issuance_engine.valuation_service"
    assert entry["correlation_id"] == "run-7"


def test_json_lines_carry_exceptions(restore_root_logger):
    stream = io.StringIO()
    setup_logging("INFO", "json", stream=stream)

    try:
        raise KeyError("txId")
    except KeyError:
        logging.getLogger("issuance_engine").exception("mint failed")

    entry = json.loads(stream.getvalue())
    assert entry["message"] == "mint failed"
    assert "KeyError: 'txId'" in entry["exception"]


def test_text_format(restore_root_logger):
    stream = io.StringIO()
    setup_logging("WARNING", "text", stream=stream)

    logging.getLogger("orchestrator").info("hidden")
    logging.getLogger("orchestrator").warning("shown")

    output = stream.getvalue()
    assert "hidden" not in output
    assert "| WARNING  | orchestrator |" in output


def test_formatter_without_correlation_id():
    record = logging.LogRecord("core", logging.ERROR, __file__, 1, "boom", None, None)

    entry = json.loads(JsonFormatter().format(record))

    assert entry["correlation_id"] == ""
    assert "exception" not in entry
