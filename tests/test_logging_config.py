"""
Tests for logger configuration.

Run with: pytest tests/test_logging_config.py -v
"""

import logging

from histimagery.logging_config import (
    DEFAULT_FORMAT,
    DETAILED_FORMAT,
    HANDLER_NAME,
    PACKAGE_LOGGER,
    get_logger,
    setup_logging,
)


def package_handlers():
    return [h for h in logging.getLogger(PACKAGE_LOGGER).handlers if h.get_name() == HANDLER_NAME]


class TestLoggingConfig:
    def test_module_loggers_are_children(self):
        logger = get_logger("histimagery.aggregation")
        assert logger.name == "histimagery.aggregation"
        assert logger.parent.name == PACKAGE_LOGGER

    def test_explicit_level(self):
        assert setup_logging("DEBUG").level == logging.DEBUG
        assert setup_logging("warning").level == logging.WARNING

    def test_level_from_environment(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "INFO")
        assert setup_logging().level == logging.INFO

    def test_unknown_level_falls_back_to_warning(self, monkeypatch):
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        assert setup_logging("CHATTY").level == logging.WARNING

    def test_single_handler(self):
        setup_logging()
        setup_logging()
        assert len(package_handlers()) == 1

    def test_detailed_format(self):
        setup_logging("DEBUG", detailed=True)
        assert package_handlers()[0].formatter._fmt == DETAILED_FORMAT
        setup_logging()
        assert package_handlers()[0].formatter._fmt == DEFAULT_FORMAT
