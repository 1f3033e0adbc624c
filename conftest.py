"""Shared pytest configuration."""

import logging
import os
import tempfile

import pytest
from loguru import logger

# Keep the process-wide settings away from the working directory
_session_dir = tempfile.mkdtemp(prefix="canvas_store_tests_")
os.environ.setdefault("STORAGE_DIR", os.path.join(_session_dir, "storage"))
os.environ.setdefault("LOG_DIR", os.path.join(_session_dir, "logs"))


@pytest.fixture
def caplog(caplog):
    """Route loguru records into pytest's caplog."""

    class PropagateHandler(logging.Handler):
        def emit(self, record: logging.LogRecord) -> None:
            logging.getLogger(record.name).handle(record)

    handler_id = logger.add(PropagateHandler(), format="{message}", level=0)
    yield caplog
    logger.remove(handler_id)
