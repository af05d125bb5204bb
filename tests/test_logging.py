import logging

from chatsync.core.logging import QUIET_LOGGERS, setup_logging


def test_setup_logging_applies_level_and_quiets_clients(monkeypatch) -> None:
    root_logger = logging.getLogger()
    monkeypatch.setattr(root_logger, "level", root_logger.level)
    monkeypatch.setenv("LOG_LEVEL", "debug")

    setup_logging()

    assert root_logger.level == logging.DEBUG
    assert root_logger.handlers
    for name in QUIET_LOGGERS:
        assert logging.getLogger(name).level == logging.WARNING
