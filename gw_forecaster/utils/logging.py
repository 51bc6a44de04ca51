"""
Logging setup for the Groundwater Forecaster.

``configure_logging(config)`` is called once by each CLI command before it
touches the session.  Library modules only ever call
``logging.getLogger(__name__)``.

Every record carries the well and model kind being evaluated, bound with
``log_context()`` around a check::

    with log_context(well_id="W1", model_kind="arima"):
        run_backtest(...)

Text lines read::

    2024-05-21T08:00:00Z [INFO] gw_forecaster.forecasting.workspace (W1/arima): Checked ...

With ``json_format = true`` each line is one JSON object with the keys
``ts``, ``level``, ``logger``, ``wellId``, ``modelKind`` and ``msg``.
"""

from __future__ import annotations

import json
import logging
import sys
import time
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING, Iterator, Optional

if TYPE_CHECKING:
    from gw_forecaster.config import LoggingConfig

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s (%(well_id)s/%(model_kind)s): %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%dT%H:%M:%SZ"
NO_CONTEXT = "-"

# Chatty libraries held at WARNING whatever the configured level.
QUIET_LOGGERS = ("httpx", "httpcore")

_well_id: ContextVar[str] = ContextVar("gw_well_id", default=NO_CONTEXT)
_model_kind: ContextVar[str] = ContextVar("gw_model_kind", default=NO_CONTEXT)


@contextmanager
def log_context(well_id: Optional[str] = None, model_kind: Optional[str] = None) -> Iterator[None]:
    """Tag every record emitted inside the block with a well and model kind."""
    tokens = []
    if well_id is not None:
        tokens.append((_well_id, _well_id.set(well_id)))
    if model_kind is not None:
        tokens.append((_model_kind, _model_kind.set(model_kind)))
    try:
        yield
    finally:
        for var, token in reversed(tokens):
            var.reset(token)


class _ContextFilter(logging.Filter):
    """Copy the bound well and model kind onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.well_id = _well_id.get()
        record.model_kind = _model_kind.get()
        return True


class _UtcFormatter(logging.Formatter):
    converter = time.gmtime


class _JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).strftime(LOG_DATE_FORMAT),
            "level": record.levelname,
            "logger": record.name,
            "wellId": getattr(record, "well_id", NO_CONTEXT),
            "modelKind": getattr(record, "model_kind", NO_CONTEXT),
            "msg": record.getMessage(),
        }
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def configure_logging(config: "LoggingConfig") -> None:
    """Install the console handler and, if configured, a rotating log file.

    Args:
        config: ``[logging]`` section of ``AppConfig``.  ``log_file = ""``
            disables the file; it rolls over at ``max_bytes`` keeping
            ``backup_count`` old files.
    """
    level = getattr(logging, config.level)
    formatter = _JsonFormatter() if config.json_format else _UtcFormatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    context = _ContextFilter()

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if config.log_file:
        log_path = Path(config.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                log_path,
                maxBytes=config.max_bytes,
                backupCount=config.backup_count,
                encoding="utf-8",
            )
        )
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(context)

    logging.basicConfig(level=level, handlers=handlers, force=True)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
