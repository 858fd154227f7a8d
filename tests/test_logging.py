"""Tests for logging setup and context fields."""

import json
import logging

import pytest

from nodeflow.core.logging import (
    StructuredFormatter,
    _context_filter,
    clear_logging_context,
    log_with_context,
    set_logging_context,
    setup_logging,
)


class ListHandler(logging.Handler):

    def __init__(self):
        super().__init__()
        self.lines = []

    def emit(self, record):
        self.lines.append(self.format(record))


@pytest.fixture
def json_logger():
    handler = ListHandler()
    handler.setFormatter(StructuredFormatter())
    handler.addFilter(_context_filter)
    logger = logging.getLogger("nodeflow.tests.structured")
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    yield logger, handler
    logger.removeHandler(handler)
    clear_logging_context()


class TestStructuredLogging:

    def test_context_and_call_fields(self, json_logger):
        logger, handler = json_logger
        set_logging_context(service="nodeflow")

        log_with_context(logger, logging.INFO, "Run started", run_id="run-1", node_id="timer")

        line = json.loads(handler.lines[0])
        assert line["message"] == "Run started"
        assert line["level"] == "INFO"
        assert line["service"] == "nodeflow"
        assert line["run_id"] == "run-1"
        assert line["node_id"] == "timer"

    def test_exception_rendered(self, json_logger):
        logger, handler = json_logger

        try:
            raise RuntimeError("boom")
        except RuntimeError:
            logger.exception("Node crashed")

        line = json.loads(handler.lines[0])
        assert line["exception"]["type"] == "RuntimeError"
        assert line["exception"]["message"] == "boom"

    def test_cleared_context(self, json_logger):
        logger, handler = json_logger
        set_logging_context(service="nodeflow")
        clear_logging_context()

        logger.info("plain")

        assert "service" not in json.loads(handler.lines[0])


class TestSetupLogging:

    def test_file_handler_created(self, tmp_path):
        root = logging.getLogger()
        saved_handlers, saved_level = list(root.handlers), root.level
        log_file = tmp_path / "logs" / "nodeflow.log"
        try:
            setup_logging(level="debug", log_file=str(log_file))
            logging.getLogger("nodeflow.tests").debug("written to file")
            for handler in root.handlers:
                handler.flush()

            assert root.level == logging.DEBUG
            assert "written to file" in log_file.read_text()
        finally:
            for handler in list(root.handlers):
                root.removeHandler(handler)
                handler.close()
            for handler in saved_handlers:
                root.addHandler(handler)
            root.setLevel(saved_level)
