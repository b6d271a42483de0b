"""Tests for root logger configuration."""

import json
import logging
import sys

import pytest
from rich.logging import RichHandler

from factsets.log import JsonFormatter, configure_logging


@pytest.fixture(autouse=True)
def _restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def _record(msg="hello %s", args=("world",), level=logging.INFO, exc_info=None):
    return logging.LogRecord("factsets.test", level, __file__, 1, msg, args, exc_info)


class TestJsonFormatter:
    def test_fields(self):
        data = json.loads(JsonFormatter().format(_record()))
        assert data["level"] == "info"
        assert data["logger"] == "factsets.test"
        assert data["message"] == "hello world"
        assert data["ts"].endswith("+00:00")

    def test_exception_included(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = _record(level=logging.ERROR, exc_info=sys.exc_info())
        data = json.loads(JsonFormatter().format(record))
        assert "RuntimeError: boom" in data["exc"]


class TestConfigureLogging:
    def test_text_uses_rich(self):
        configure_logging("debug", "text")
        root = logging.getLogger()
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0], RichHandler)
        assert root.level == logging.DEBUG

    def test_json_handler(self):
        configure_logging("warn", "json")
        root = logging.getLogger()
        assert isinstance(root.handlers[0].formatter, JsonFormatter)
        assert root.level == logging.WARNING

    def test_reconfigure_replaces_handlers(self):
        configure_logging("info", "text")
        configure_logging("error", "json")
        root = logging.getLogger()
        assert len(root.handlers) == 1
        assert root.level == logging.ERROR
