"""
Tests for logging setup.
"""

import logging

import pytest

from polymarket_clob.logger import HANDLER_MARK, setup_logging


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers = handlers
    root.setLevel(level)


def installed():
    return [h for h in logging.getLogger().handlers if getattr(h, HANDLER_MARK, False)]


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_repeated_calls_do_not_duplicate(self, tmp_path):
        """Calling setup twice leaves one console and one file handler."""
        log_file = str(tmp_path / "logs" / "clob.log")
        setup_logging(log_file=log_file)
        setup_logging(log_file=log_file)
        assert len(installed()) == 2

    def test_foreign_handlers_kept(self):
        """Handlers installed by someone else survive setup."""
        foreign = logging.NullHandler()
        logging.getLogger().addHandler(foreign)
        setup_logging(use_rich=False)
        setup_logging(use_rich=False)
        assert foreign in logging.getLogger().handlers
        assert len(installed()) == 1

    def test_verbose_console_level(self):
        setup_logging(verbose=True, use_rich=False)
        assert installed()[0].level == logging.DEBUG

    def test_file_written(self, tmp_path):
        log_file = tmp_path / "clob.log"
        setup_logging(use_rich=False, log_file=str(log_file))
        logging.getLogger("polymarket_clob.test").debug("hello file")
        for handler in installed():
            handler.flush()
        assert "hello file" in log_file.read_text()
