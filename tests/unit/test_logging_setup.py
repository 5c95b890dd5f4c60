#!/usr/bin/env python3
"""
Unit tests for logging configuration.
"""

import logging

import pytest

from runner.logging_setup import ROOT_LOGGER, get_logger, setup_logging


@pytest.fixture(autouse=True)
def reset_project_logger():
    yield
    logger = logging.getLogger(ROOT_LOGGER)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)


def test_module_loggers_are_children_of_project_logger():
    logger = get_logger("place_collector")

    assert logger.name == "place_rank_tracker.place_collector"
    assert logger.parent is logging.getLogger(ROOT_LOGGER)
    assert not logger.handlers


def test_setup_writes_rotating_file(tmp_path):
    logger = setup_logging("DEBUG", tmp_path, log_name="batch")

    get_logger("batch_orchestrator").debug("chunk 1/1")
    for handler in logger.handlers:
        handler.flush()

    assert logger.level == logging.DEBUG
    assert "chunk 1/1" in (tmp_path / "batch.log").read_text(encoding="utf-8")


def test_setup_twice_replaces_handlers(tmp_path):
    setup_logging("INFO", tmp_path)
    logger = setup_logging("WARNING", tmp_path)

    assert len(logger.handlers) == 2
    assert logger.level == logging.WARNING


def test_console_only_without_log_dir():
    logger = setup_logging("INFO", None)

    assert len(logger.handlers) == 1
    assert isinstance(logger.handlers[0], logging.StreamHandler)


def test_unknown_level_falls_back_to_info():
    assert setup_logging("VERBOSE", None).level == logging.INFO
