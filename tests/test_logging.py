"""Tests for root logger configuration."""
import json
import logging

import pytest
from pythonjsonlogger.json import JsonFormatter

from app.core.logging import setup_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    root.handlers = handlers
    root.setLevel(level)


def test_json_format_emits_json_records(restore_root_logger):
    setup_logging(level="info", log_format="json")

    handler = restore_root_logger.handlers[0]
    assert isinstance(handler.formatter, JsonFormatter)
    assert restore_root_logger.level == logging.INFO

    record = logging.LogRecord(
        "app.services.task_service", logging.INFO, __file__, 1, "task %s archived", ("t-1",), None
    )
    payload = json.loads(handler.formatter.format(record))
    assert payload["message"] == "task t-1 archived"
    assert payload["levelname"] == "INFO"
    assert payload["name"] == "app.services.task_service"


def test_text_format_is_plain(restore_root_logger):
    setup_logging(level="warning", log_format="text")

    formatter = restore_root_logger.handlers[0].formatter
    assert not isinstance(formatter, JsonFormatter)
    assert restore_root_logger.level == logging.WARNING
