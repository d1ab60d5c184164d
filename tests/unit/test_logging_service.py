"""Tests for logging setup driven by settings."""

import logging

import pytest

from estatebill.config import reset_settings
from estatebill.services.logging import QUIET_LOGGERS, setup_logging


@pytest.fixture(autouse=True)
def fresh_settings():
    reset_settings()
    yield
    reset_settings()


class TestSetupLogging:
    def setup_method(self):
        self.root_logger = logging.getLogger()
        self.original_handlers = self.root_logger.handlers.copy()
        self.original_level = self.root_logger.level
        self.original_quiet = {name: logging.getLogger(name).level for name in QUIET_LOGGERS}

    def teardown_method(self):
        for handler in self.root_logger.handlers[:]:
            handler.close()
            self.root_logger.removeHandler(handler)
        for handler in self.original_handlers:
            self.root_logger.addHandler(handler)
        self.root_logger.setLevel(self.original_level)
        for name, level in self.original_quiet.items():
            logging.getLogger(name).setLevel(level)

    def test_file_and_level_from_settings(self, tmp_path, monkeypatch):
        log_file = tmp_path / "nested" / "billing.log"
        monkeypatch.setenv("LOG_FILE", str(log_file))
        monkeypatch.setenv("LOG_LEVEL", "WARNING")

        applied = setup_logging()

        assert applied == logging.WARNING
        assert log_file.parent.exists()
        assert self.root_logger.level == logging.WARNING
        assert len(self.root_logger.handlers) == 2
        for handler in self.root_logger.handlers:
            assert handler.level == logging.WARNING

    def test_explicit_arguments_override_settings(self, tmp_path, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "ERROR")
        monkeypatch.setenv("LOG_FILE", str(tmp_path / "unused.log"))

        setup_logging(str(tmp_path / "explicit.log"), level="debug")

        assert self.root_logger.level == logging.DEBUG
        assert (tmp_path / "explicit.log").exists()
        assert not (tmp_path / "unused.log").exists()

    def test_unknown_level_falls_back_to_info(self, tmp_path, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "LOUD")

        assert setup_logging(str(tmp_path / "billing.log")) == logging.INFO

    def test_writes_name_level_and_timestamp(self, tmp_path):
        log_file = tmp_path / "billing.log"
        setup_logging(str(log_file), level="INFO")

        logging.getLogger("estatebill.test").warning("Scheduler message")

        log_contents = log_file.read_text()
        assert "Scheduler message" in log_contents
        assert "estatebill.test" in log_contents
        assert "WARNING" in log_contents
        assert "[20" in log_contents

    def test_repeated_setup_does_not_duplicate_handlers(self, tmp_path):
        log_file = tmp_path / "billing.log"
        dummy_handler = logging.StreamHandler()
        self.root_logger.addHandler(dummy_handler)

        setup_logging(str(log_file))
        setup_logging(str(log_file))

        assert len(self.root_logger.handlers) == 2
        assert dummy_handler not in self.root_logger.handlers

    def test_apscheduler_quiet_unless_debug(self, tmp_path):
        setup_logging(str(tmp_path / "billing.log"), level="INFO")
        assert logging.getLogger("apscheduler.executors.default").level == logging.WARNING

        setup_logging(str(tmp_path / "billing.log"), level="DEBUG")
        assert logging.getLogger("apscheduler.executors.default").level == logging.NOTSET
