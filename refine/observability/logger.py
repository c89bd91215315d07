"""
Logging for refinement runs

Modules log through get_logger(__name__). While a run is active (log_run),
every record is stamped with the dataset being refined and the source row
being read, so a skipped row or a name diagnostic points back at its input
line. Output is JSON (python-json-logger) unless LOG_FORMAT=text.
"""
import logging
import os
import sys
import time
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

from pythonjsonlogger import jsonlogger

# Record attributes filled from the active run
RUN_FIELDS = ("dataset_id", "row")


@dataclass
class RunContext:
    """Position of the active run; the pipeline advances ``row`` as it reads."""

    dataset_id: str
    source: str
    row: int | None = None


_current_run: ContextVar[RunContext | None] = ContextVar("refine_current_run", default=None)


def current_run() -> RunContext | None:
    return _current_run.get()


class RunContextFilter(logging.Filter):
    """
    Stamps dataset_id and row from the active run onto each record.

    Values passed explicitly through ``extra`` are kept.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        run = _current_run.get()
        for field in RUN_FIELDS:
            if getattr(record, field, None) is None:
                setattr(record, field, getattr(run, field) if run is not None else None)
        return True


class RunJsonFormatter(jsonlogger.JsonFormatter):
    """
    One JSON object per record: timestamp, level, logger, message, plus the
    run fields and any ``extra`` keys. Run fields with no value are omitted.
    """

    def add_fields(self, log_record: dict, record: logging.LogRecord, message_dict: dict) -> None:
        super().add_fields(log_record, record, message_dict)

        if not log_record.get("timestamp"):
            log_record["timestamp"] = self.formatTime(record, self.datefmt)
        log_record["level"] = record.levelname
        log_record["logger"] = record.name

        for field in RUN_FIELDS:
            value = getattr(record, field, None)
            if value is None:
                log_record.pop(field, None)
            else:
                log_record[field] = value


class RunTextFormatter(logging.Formatter):
    """Plain lines prefixed with ``[dataset_id:row]`` when a run is active."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        dataset_id = getattr(record, "dataset_id", None)
        if dataset_id is None:
            return line
        row = getattr(record, "row", None)
        where = dataset_id if row is None else f"{dataset_id}:{row}"
        return f"[{where}] {line}"


def _resolve_level(name: str) -> int:
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.INFO


def setup_logger(
    name: str = "refine",
    level: str | None = None,
    format_type: str | None = None,
) -> logging.Logger:
    """
    Configure a logger with a single stdout handler

    Args:
        name: Logger name
        level: Level name; defaults to LOG_LEVEL, then INFO. Unknown names
            fall back to INFO.
        format_type: "json" or "text"; defaults to LOG_FORMAT, then json

    Returns:
        Configured logger instance
    """
    log_level = _resolve_level(level or os.getenv("LOG_LEVEL", "INFO"))
    format_type = format_type or os.getenv("LOG_FORMAT", "json")

    logger = logging.getLogger(name)
    logger.setLevel(log_level)
    logger.handlers.clear()
    for existing in [f for f in logger.filters if isinstance(f, RunContextFilter)]:
        logger.removeFilter(existing)
    logger.addFilter(RunContextFilter())

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    if format_type == "json":
        handler.setFormatter(RunJsonFormatter(
            fmt="%(timestamp)s %(level)s %(logger)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
        ))
    else:
        handler.setFormatter(RunTextFormatter(
            fmt="%(asctime)s %(levelname)s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        ))
    logger.addHandler(handler)

    # Package loggers write their own lines; the root logger stays untouched
    logger.propagate = False

    return logger


def get_logger(name: str = "refine") -> logging.Logger:
    """Logger for ``name``, configured on first use."""
    logger = logging.getLogger(name)
    if not logger.handlers:
        return setup_logger(name)
    return logger


@contextmanager
def log_run(logger: logging.Logger, dataset_id: str, source: str | Path) -> Iterator[RunContext]:
    """
    Bind a run context for the duration of a refinement and log its outcome.

    Logs the start, then either the completion with the last row read and the
    elapsed time, or the failure once with its traceback. Exceptions propagate.

    Usage:
        with log_run(logger, "taibif-fish", path) as run:
            run.row = 1
    """
    run = RunContext(dataset_id=dataset_id, source=str(source))
    token = _current_run.set(run)
    started = time.monotonic()
    logger.info(f"Refining {run.source}")
    try:
        yield run
    except Exception as e:
        logger.error(
            f"Refinement of {run.source} failed after {time.monotonic() - started:.3f}s",
            extra={"error_type": type(e).__name__, "error_message": str(e)},
            exc_info=True,
        )
        raise
    else:
        logger.info(
            f"Refined {run.source} in {time.monotonic() - started:.3f}s",
            extra={"rows_read": run.row or 0},
        )
    finally:
        _current_run.reset(token)
