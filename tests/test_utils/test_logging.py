"""
Tests for logging setup: the well/model-kind context, the formatters and the
handlers installed by ``configure_logging``.
"""

from __future__ import annotations

import json
import logging
import sys
from logging.handlers import RotatingFileHandler

import pytest

from gw_forecaster.config import LoggingConfig
from gw_forecaster.utils.logging import (
    NO_CONTEXT,
    _ContextFilter,
    _JsonFormatter,
    configure_logging,
    log_context,
)


def _record(msg: str = "hello") -> logging.LogRecord:
    record = logging.LogRecord("gw_forecaster.test", logging.INFO, __file__, 1, msg, None, None)
    _ContextFilter().filter(record)
    return record


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


class TestLogContext:
    def test_defaults_outside_context(self):
        record = _record()
        assert record.well_id == NO_CONTEXT
        assert record.model_kind == NO_CONTEXT

    def test_binds_inside_block(self):
        with log_context(well_id="W1", model_kind="arima"):
            record = _record()
        assert (record.well_id, record.model_kind) == ("W1", "arima")

    def test_resets_after_block(self):
        with log_context(well_id="W1", model_kind="arima"):
            pass
        assert _record().well_id == NO_CONTEXT

    def test_nested_blocks_restore_outer(self):
        with log_context(well_id="W1", model_kind="general"):
            with log_context(model_kind="arima"):
                inner = _record()
            outer = _record()
        assert (inner.well_id, inner.model_kind) == ("W1", "arima")
        assert (outer.well_id, outer.model_kind) == ("W1", "general")

    def test_resets_on_exception(self):
        with pytest.raises(RuntimeError):
            with log_context(well_id="W9"):
                raise RuntimeError("boom")
        assert _record().well_id == NO_CONTEXT


class TestJsonFormatter:
    def test_one_object_per_line(self):
        with log_context(well_id="W2", model_kind="gaussian_process"):
            line = _JsonFormatter().format(_record("checked %s"))
        payload = json.loads(line)
        assert payload["level"] == "INFO"
        assert payload["logger"] == "gw_forecaster.test"
        assert payload["wellId"] == "W2"
        assert payload["modelKind"] == "gaussian_process"
        assert payload["msg"] == "checked %s"
        assert payload["ts"].endswith("Z")

    def test_includes_exception_text(self):
        try:
            raise ValueError("bad recipe")
        except ValueError:
            record = logging.LogRecord("x", logging.ERROR, __file__, 1, "failed", None, sys.exc_info())
        _ContextFilter().filter(record)
        payload = json.loads(_JsonFormatter().format(record))
        assert "bad recipe" in payload["exc"]


class TestConfigureLogging:
    def test_console_only_when_no_file(self, restore_root_logger):
        configure_logging(LoggingConfig(level="DEBUG", log_file=""))
        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert not isinstance(root.handlers[0], RotatingFileHandler)

    def test_file_handler_rotates(self, tmp_path, restore_root_logger):
        log_file = tmp_path / "logs" / "gw.log"
        configure_logging(
            LoggingConfig(level="INFO", log_file=str(log_file), max_bytes=500, backup_count=2)
        )
        files = [h for h in logging.getLogger().handlers if isinstance(h, RotatingFileHandler)]
        assert len(files) == 1
        assert files[0].maxBytes == 500
        assert files[0].backupCount == 2

    def test_file_lines_carry_context(self, tmp_path, restore_root_logger):
        log_file = tmp_path / "gw.log"
        configure_logging(LoggingConfig(level="INFO", log_file=str(log_file)))
        with log_context(well_id="W1", model_kind="general"):
            logging.getLogger("gw_forecaster.test").info("checked")
        for handler in logging.getLogger().handlers:
            handler.flush()
        text = log_file.read_text(encoding="utf-8")
        assert "gw_forecaster.test (W1/general): checked" in text

    def test_json_lines(self, tmp_path, restore_root_logger):
        log_file = tmp_path / "gw.log"
        configure_logging(LoggingConfig(level="INFO", log_file=str(log_file), json_format=True))
        logging.getLogger("gw_forecaster.test").warning("low water")
        for handler in logging.getLogger().handlers:
            handler.flush()
        payload = json.loads(log_file.read_text(encoding="utf-8").splitlines()[-1])
        assert payload["msg"] == "low water"
        assert payload["wellId"] == NO_CONTEXT

    def test_quietens_http_loggers(self, restore_root_logger):
        configure_logging(LoggingConfig(level="DEBUG", log_file=""))
        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("httpcore").level == logging.WARNING
