"""Structured logging for the conversion service.

GEOTEXT_JSON_LOGS=1 (default) writes one JSON object per record, anything
else a short human-readable line. GEOTEXT_LOG_LEVEL sets the root level.
Records may carry any of FIELDS through ``extra=``; both formatters render
the ones present.
"""
from __future__ import annotations

import json
import logging
import os
import sys
import uuid
from contextlib import contextmanager
from time import perf_counter
from typing import Any, Dict, Iterator

# extra= keys rendered by the formatters, with their short label in plain mode
FIELDS: Dict[str, str] = {
    "request_id": "rid",
    "method": "method",
    "path": "path",
    "status": "status",
    "duration_ms": "ms",
    "event": "event",
    "convention": "conv",
    "dialect": "dialect",
    "db_path": "db",
    "warnings": "warn",
}

REQUEST_ID_HEADER = "X-Request-ID"


def _fields(record: logging.LogRecord) -> Dict[str, Any]:
    return {k: getattr(record, k) for k in FIELDS if hasattr(record, k)}


class _JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # pragma: no cover - formatting
        doc: Dict[str, Any] = {
            "ts": self.formatTime(record, datefmt="%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        doc.update(_fields(record))
        if record.exc_info and record.exc_info[0] is not None:
            doc["exc_type"] = record.exc_info[0].__name__
        return json.dumps(doc, ensure_ascii=False, default=str)


class _PlainFormatter(logging.Formatter):  # pragma: no cover - formatting
    def format(self, record: logging.LogRecord) -> str:
        line = f"{self.formatTime(record, datefmt='%H:%M:%S')} {record.levelname[0]} {record.name}: {record.getMessage()}"
        extras = " ".join(f"{FIELDS[k]}={v}" for k, v in _fields(record).items())
        return f"{line} {extras}" if extras else line


def configure_logging() -> None:
    if getattr(configure_logging, "_configured", False):  # idempotent
        return
    root = logging.getLogger()
    root.setLevel(os.getenv("GEOTEXT_LOG_LEVEL", "INFO").upper())
    for h in list(root.handlers):  # uvicorn installs its own
        root.removeHandler(h)
    handler = logging.StreamHandler(sys.stdout)
    json_logs = os.getenv("GEOTEXT_JSON_LOGS", "1") == "1"
    handler.setFormatter(_JsonFormatter() if json_logs else _PlainFormatter())
    root.addHandler(handler)
    configure_logging._configured = True  # type: ignore[attr-defined]


@contextmanager
def timed(logger: logging.Logger, event: str, **fields: Any) -> Iterator[Dict[str, Any]]:
    """Log ``event`` at INFO with its duration once the block exits.

    The yielded dict is merged into the record, so the block can add fields
    it only learns while running (e.g. the detected dialect).
    """
    extra: Dict[str, Any] = {"event": event, **fields}
    start = perf_counter()
    try:
        yield extra
    finally:
        extra["duration_ms"] = round((perf_counter() - start) * 1000.0, 2)
        logger.info(event, extra=extra)


async def logging_middleware(request, call_next):  # pragma: no cover - thin wrapper
    rid = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:8]
    request.state.request_id = rid
    logger = logging.getLogger("geotext.request")
    fields = {"request_id": rid, "path": request.url.path, "method": request.method}
    start = perf_counter()
    status = None
    try:
        response = await call_next(request)
        status = response.status_code
        response.headers[REQUEST_ID_HEADER] = rid
        return response
    finally:
        logger.info(
            "request.end",
            extra={**fields, "status": status, "duration_ms": round((perf_counter() - start) * 1000.0, 2)},
        )


__all__ = ["FIELDS", "REQUEST_ID_HEADER", "configure_logging", "timed", "logging_middleware"]
