"""
Tests for the loguru setup.
"""
import logging
import sys

import pytest
from loguru import logger

from app.core.config import Settings
from app.core.logging import setup_logging


@pytest.fixture
def restore_logging():
    root_handlers = logging.root.handlers[:]
    yield
    logger.remove()
    logger.add(sys.stderr)
    logging.root.handlers = root_handlers


def test_console_only_when_log_file_is_empty(restore_logging):
    sink_ids = setup_logging(Settings(LOG_FILE=""))

    assert len(sink_ids) == 1


def test_stdlib_records_reach_file_sink_with_request_id(restore_logging, tmp_path):
    log_file = tmp_path / "app.log"
    sink_ids = setup_logging(Settings(LOG_FILE=str(log_file), LOG_LEVEL="INFO"))
    assert len(sink_ids) == 2

    logging.getLogger("httpx").info("HTTP Request: GET /playlists")
    with logger.contextualize(request_id="req-42"):
        logger.info("inside a request")
    for sink_id in sink_ids:
        logger.remove(sink_id)

    lines = log_file.read_text().splitlines()
    assert any("| - |" in line and "HTTP Request: GET /playlists" in line for line in lines)
    assert any("| req-42 |" in line and "inside a request" in line for line in lines)
