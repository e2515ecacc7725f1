"""Tests for logging setup."""

import logging
import logging.handlers

import pytest

from signoff.core.logger import setup_logger


@pytest.fixture
def logger_name(request):
    name = f"signoff.tests.{request.node.name}"
    yield name
    logger = logging.getLogger(name)
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)


def test_console_only_by_default(logger_name):
    logger = setup_logger(logger_name, level="debug")
    assert logger.level == logging.DEBUG
    assert [type(h) for h in logger.handlers] == [logging.StreamHandler]


def test_rotating_file_when_log_dir_set(logger_name, tmp_path):
    logger = setup_logger(logger_name, log_dir=str(tmp_path / "logs"))
    file_handlers = [h for h in logger.handlers if isinstance(h, logging.handlers.RotatingFileHandler)]
    assert len(file_handlers) == 1

    logger.info("approval decided")
    file_handlers[0].flush()
    assert "approval decided" in (tmp_path / "logs" / f"{logger_name}.log").read_text()


def test_handlers_attached_once(logger_name):
    setup_logger(logger_name)
    logger = setup_logger(logger_name, level="WARNING")
    assert len(logger.handlers) == 1
    assert logger.level == logging.WARNING


def test_invalid_level(logger_name):
    with pytest.raises(ValueError):
        setup_logger(logger_name, level="LOUD")
