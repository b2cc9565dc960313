"""Unit tests for logging configuration."""

import json
import logging
import sys

import pytest

from broadlink_webhooks.core.logging_config import (
    StructuredFormatter,
    get_task_logger,
    setup_logging
)
from broadlink_webhooks.core.models import AppletGroup


@pytest.fixture
def restore_root_logger():
    root_logger = logging.getLogger()
    handlers = root_logger.handlers[:]
    level = root_logger.level
    yield root_logger
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()
    for handler in handlers:
        root_logger.addHandler(handler)
    root_logger.setLevel(level)


class TestStructuredFormatter:
    """Test StructuredFormatter."""

    def test_formats_json_with_extras(self):
        record = logging.LogRecord("broadlink_webhooks.tasks", logging.INFO, __file__, 10,
                                   "Starting %s", ("task",), None)
        record.task = "Create Webhooks Applets"
        record.group = AppletGroup.DEVICES_ONLY
        record.attempt = 2

        data = json.loads(StructuredFormatter().format(record))

        assert data["message"] == "Starting task"
        assert data["level"] == "INFO"
        assert data["task"] == "Create Webhooks Applets"
        assert data["group"] == "Devices Only"
        assert data["attempt"] == 2

    def test_formats_exceptions(self):
        try:
            raise ValueError("bad title")
        except ValueError:
            record = logging.LogRecord("x", logging.ERROR, __file__, 1, "failed", (), sys.exc_info())

        data = json.loads(StructuredFormatter().format(record))

        assert data["exception"]["type"] == "ValueError"
        assert data["exception"]["message"] == "bad title"


class TestSetupLogging:
    """Test setup_logging."""

    def test_creates_log_files(self, tmp_path, restore_root_logger):
        loggers = setup_logging("WARNING", str(tmp_path / "logs"))

        logging.getLogger("broadlink_webhooks.test").error("something failed")
        for handler in restore_root_logger.handlers:
            handler.flush()

        assert "tasks" in loggers
        lines = (tmp_path / "logs" / "broadlink_webhooks_errors.log").read_text(encoding="utf-8").splitlines()
        assert json.loads(lines[-1])["message"] == "something failed"

    def test_console_only(self, restore_root_logger):
        loggers = setup_logging("INFO", None)

        assert list(loggers) == ["root"]
        assert len(restore_root_logger.handlers) == 1


def test_task_logger_adds_context(caplog):
    task_logger = get_task_logger("tasks", task="Create Webhooks Applets", group="Devices Only")

    with caplog.at_level(logging.INFO):
        task_logger.log_operation_success("Create Webhooks Applets", 1.5, created=2)

    record = caplog.records[-1]
    assert record.task == "Create Webhooks Applets"
    assert record.group == "Devices Only"
    assert record.success is True
    assert record.metadata == {"created": 2}
