"""
Tests for logging setup.

Usage:
    pytest tests/test_logging_config.py -v
"""

import json
import logging

from src.data.config import LoggingConfig
from src.orchestrator.logging_config import DEFAULT_FORMAT, JSONFormatter, setup_logging


def make_record(msg="hello", **extra):
    record = logging.LogRecord("src.reviews", logging.INFO, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestSetupLogging:

    def setup_method(self):
        self.root = logging.getLogger()
        self.saved_handlers = list(self.root.handlers)
        self.saved_level = self.root.level

    def teardown_method(self):
        for handler in self.root.handlers:
            if handler not in self.saved_handlers:
                handler.close()
        self.root.handlers[:] = self.saved_handlers
        self.root.setLevel(self.saved_level)

    def test_custom_format_applied(self):
        setup_logging(level="DEBUG", fmt="%(levelname)s|%(message)s")
        formatter = self.root.handlers[0].formatter
        assert formatter.format(make_record()) == "INFO|hello"
        assert self.root.level == logging.DEBUG

    def test_default_format(self):
        setup_logging()
        assert self.root.handlers[0].formatter._fmt == DEFAULT_FORMAT

    def test_json_output_ignores_format(self):
        setup_logging(json_output=True, fmt="%(message)s")
        assert isinstance(self.root.handlers[0].formatter, JSONFormatter)

    def test_log_format_env_reaches_formatter(self, monkeypatch):
        monkeypatch.setenv("LOG_FORMAT", "%(name)s: %(message)s")
        cfg = LoggingConfig()
        setup_logging(fmt=cfg.format)
        assert self.root.handlers[0].formatter.format(make_record()) == "src.reviews: hello"

    def test_rotating_file_handler(self, tmp_path):
        log_file = tmp_path / "logs" / "insights.log"
        setup_logging(log_file=str(log_file))
        assert len(self.root.handlers) == 2
        assert log_file.parent.exists()


class TestJSONFormatter:

    def test_extra_fields(self):
        line = JSONFormatter().format(make_record(stage="synthesis", cluster_id=2))
        data = json.loads(line)
        assert data["msg"] == "hello"
        assert data["stage"] == "synthesis"
        assert data["cluster_id"] == 2
        assert "run_id" not in data
