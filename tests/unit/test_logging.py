"""
Tests for structured logging setup.
"""

import json
import logging

import pytest
import structlog

from noteferry.config import MonitoringConfig
from noteferry.observability import configure_logging


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers = handlers
    root.setLevel(level)
    structlog.reset_defaults()


@pytest.mark.unit
class TestConfigureLogging:
    def test_file_output_is_json_with_request_id(self, tmp_path, restore_logging):
        log_file = tmp_path / "logs" / "noteferry.log"
        configure_logging(MonitoringConfig(log_level="INFO", log_file=str(log_file)))

        structlog.contextvars.bind_contextvars(request_id="req-7")
        try:
            structlog.get_logger("noteferry.test").info("Extraction succeeded", platform="wechat")
        finally:
            structlog.contextvars.clear_contextvars()
        for handler in logging.getLogger().handlers:
            handler.flush()

        records = [json.loads(line) for line in log_file.read_text(encoding="utf-8").splitlines() if line]
        record = next(r for r in records if r["event"] == "Extraction succeeded")
        assert record["request_id"] == "req-7"
        assert record["platform"] == "wechat"
        assert record["level"] == "info"

    def test_level_applied_to_root_logger(self, restore_logging):
        configure_logging(MonitoringConfig(log_level="warning"))

        assert logging.getLogger().level == logging.WARNING
        assert len(logging.getLogger().handlers) == 1

    def test_stdlib_records_are_rendered(self, tmp_path, restore_logging):
        log_file = tmp_path / "app.log"
        configure_logging(MonitoringConfig(log_level="DEBUG", log_file=str(log_file)))

        logging.getLogger("noteferry.config").info("Loaded %s", "config.yaml")
        for handler in logging.getLogger().handlers:
            handler.flush()

        assert "Loaded config.yaml" in log_file.read_text(encoding="utf-8")
