"""Tests for logging configuration."""

import logging

from calculator_logging import configure_logging


def test_configure_logging_idempotent() -> None:
    logger = logging.getLogger("sliding_scale")
    logger.handlers.clear()

    configure_logging()
    first_count = len(logger.handlers)

    configure_logging("debug")
    second_count = len(logger.handlers)

    assert first_count == 1
    assert second_count == 1
    assert logger.level == logging.DEBUG
    assert not logger.propagate


def test_module_loggers_are_children() -> None:
    import calculator_session
    import dose_calculator
    import dose_table

    for module in (calculator_session, dose_calculator, dose_table):
        assert module.logger.name.startswith("sliding_scale.")
