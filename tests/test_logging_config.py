"""
Tests for logging_config.py.
"""

import logging

import pytest

from cable_route_system.logging_config import get_logger, setup_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for handler in root.handlers:
        handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


def test_console_only(restore_root_logger):
    root = setup_logging("DEBUG")
    assert root.level == logging.DEBUG
    assert len(root.handlers) == 1


def test_file_handler(tmp_path, restore_root_logger):
    root = setup_logging("INFO", log_dir=str(tmp_path / "logs"), app_name="routes")
    get_logger("cable_route_system.test").info("hello from the test")
    for handler in root.handlers:
        handler.flush()

    log_files = list((tmp_path / "logs").glob("routes_*.log"))
    assert len(log_files) == 1
    assert "hello from the test" in log_files[0].read_text()


def test_invalid_level(restore_root_logger):
    with pytest.raises(ValueError):
        setup_logging("LOUD")
