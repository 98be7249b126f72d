"""
Tests for logging setup.
"""

import logging

import pytest

from ops.logging import setup_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for h in root.handlers:
        if h not in handlers:
            h.close()
    root.handlers = handlers
    root.setLevel(level)


def test_creates_log_dir_and_writes(tmp_path, restore_root_logger):
    log_path = tmp_path / "logs" / "gate.log"

    setup_logging(str(log_path), "DEBUG")
    logging.debug("ACCESS GRANTED: POX4G21")
    for h in restore_root_logger.handlers:
        h.flush()

    assert restore_root_logger.level == logging.DEBUG
    assert "ACCESS GRANTED: POX4G21" in log_path.read_text()


def test_quiets_third_party_loggers(tmp_path, restore_root_logger):
    setup_logging(str(tmp_path / "gate.log"), "INFO")
    assert logging.getLogger("ultralytics").level == logging.WARNING


def test_unknown_level_raises(tmp_path, restore_root_logger):
    with pytest.raises(ValueError):
        setup_logging(str(tmp_path / "gate.log"), "VERBOSE")
