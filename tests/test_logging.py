import logging
import json
import re
from io import StringIO

import pytest
from cursor_wsl_iso.logging import (
    JsonFormatter,
    configure_logging,
    log_with_data,
    get_logger,
)
from cursor_wsl_iso.errors import CleanPartialFailure, RuntimeUnavailable, log_error

ANSI_ESCAPE = re.compile(r"\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])")


class RecordingHandler(logging.Handler):
    def __init__(self):
        super().__init__()
        self.records = []

    def emit(self, record):
        self.records.append(record)


def test_format_json_log():
    """Test JSON log formatting"""
    formatter = JsonFormatter(color=False)
    record = logging.LogRecord(
        "test", logging.INFO, "test.py", 10, "Test message", (), None
    )

    data = json.loads(formatter.format(record))

    assert data["level"] == "INFO"
    assert data["msg"] == "Test message"
    assert data["ts"]


def test_format_dict_message():
    """Test event dicts stay structured in the JSON output"""
    formatter = JsonFormatter(color=False)
    record = logging.LogRecord(
        "test", logging.INFO, "test.py", 10, {"event": "namespace_bound", "env_id": 1}, (), None
    )

    data = json.loads(formatter.format(record))

    assert data["msg"] == {"event": "namespace_bound", "env_id": 1}


@pytest.mark.parametrize(
    "level,expected_color",
    [
        (logging.DEBUG, "\033[34m"),  # BLUE
        (logging.INFO, "\033[32m"),  # GREEN
        (logging.WARNING, "\033[33m"),  # YELLOW
        (logging.ERROR, "\033[31m\033[1m"),  # RED+BOLD
        (logging.CRITICAL, "\033[35m\033[1m"),  # MAGENTA+BOLD
    ],
)
def test_format_json_log_colors(level, expected_color):
    """Test log level color coding"""
    formatter = JsonFormatter()
    record = logging.LogRecord("test", level, "test.py", 10, "Test message", (), None)

    output = formatter.format(record)
    assert output.startswith(expected_color)
    assert output.endswith("\033[0m")


def test_log_with_data():
    """Test structured logging with data"""
    logger = logging.getLogger("test_log_with_data")
    logger.setLevel(logging.INFO)
    handler = RecordingHandler()
    logger.addHandler(handler)

    test_data = {"key": "value"}
    log_with_data(logger, logging.INFO, "Test message", test_data)

    assert len(handler.records) == 1
    assert handler.records[0].data == test_data


def test_log_with_data_json_structure():
    """Test structured logging produces valid JSON"""
    logger = logging.getLogger("test_log_with_data_json")
    logger.setLevel(logging.INFO)
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)

    test_data = {"key": "value", "nested": {"foo": "bar"}}
    log_with_data(logger, logging.INFO, "Test message", test_data)

    data = json.loads(ANSI_ESCAPE.sub("", stream.getvalue().strip()))
    assert "ts" in data
    assert data["level"] == "INFO"
    assert data["msg"] == "Test message"
    assert data["data"] == test_data


def test_get_logger():
    """Test logger retrieval"""
    assert get_logger("test_module").name == "cursor_wsl_iso.test_module"
    assert get_logger("cursor_wsl_iso.sessions").name == "cursor_wsl_iso.sessions"


def test_configure_logging():
    """Test logging configuration"""
    stream = StringIO()
    configure_logging("INFO", stream=stream)
    configure_logging("DEBUG")
    logger = logging.getLogger("cursor_wsl_iso")

    assert logger.level == logging.DEBUG
    assert len(logger.handlers) == 1
    assert isinstance(logger.handlers[0], logging.StreamHandler)
    assert not logger.propagate

    get_logger("test").info({"event": "hello"})
    assert json.loads(stream.getvalue())["msg"] == {"event": "hello"}


def test_log_error_levels():
    """Test warnings log at WARNING and failures at ERROR"""
    logger = logging.getLogger("test_log_error")
    logger.setLevel(logging.DEBUG)
    handler = RecordingHandler()
    logger.addHandler(handler)

    log_error(RuntimeUnavailable("daemon down"), logger=logger)
    log_error(CleanPartialFailure(3, ["stop containers: refused"]), context={"op": "clean"}, logger=logger)

    first, second = handler.records
    assert first.levelno == logging.WARNING
    assert first.msg["severity"] == "warning"
    assert second.levelno == logging.ERROR
    assert second.msg["details"]["failures"] == ["stop containers: refused"]
    assert second.msg["context"] == {"op": "clean"}
