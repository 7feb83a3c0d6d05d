from __future__ import annotations

import logging

from csv_reconcile.logging.init import (
    APP_LOGGER_NAME,
    SUMMARY_LEVEL,
    LabeledFormatter,
    get_logger,
    log_summary,
    setup_logging,
)


def _record(level: int, msg: str) -> logging.LogRecord:
    return logging.LogRecord("x", level, __file__, 1, msg, None, None)


def test_labeled_formatter_prefixes():
    fmt = LabeledFormatter()
    assert fmt.format(_record(logging.INFO, "hello")) == "INFO hello"
    assert fmt.format(_record(logging.WARNING, "careful")) == "WARN careful"
    assert fmt.format(_record(logging.ERROR, "bad")) == "ERROR bad"
    assert fmt.format(_record(SUMMARY_LEVEL, "kind=donors")) == "SUMMARY kind=donors"


def test_setup_logging_idempotent():
    first = setup_logging()
    second = setup_logging()
    assert first is second
    assert first.name == APP_LOGGER_NAME
    assert len(first.handlers) == 1
    assert first.propagate is False
    assert get_logger() is first


def test_setup_logging_debug_level():
    logger = setup_logging(logging.DEBUG)
    assert logger.level == logging.DEBUG
    assert logger.handlers[0].level == logging.DEBUG


def test_log_summary_to_stdout(capsys):
    setup_logging()
    log_summary("kind=donors rows=1")
    assert capsys.readouterr().out.strip() == "SUMMARY kind=donors rows=1"


def test_module_loggers_reach_app_handler(capsys):
    setup_logging()
    logging.getLogger("csv_reconcile.services.orchestrator").info("from module")
    assert "INFO from module" in capsys.readouterr().out
