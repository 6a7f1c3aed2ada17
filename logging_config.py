"""
Structured logging configuration.

LOG_FORMAT=json emits one JSON object per line; anything else emits text.
Every record logged while a request is active carries that request's id, so
AI retries, cache misses and the access line of one request can be grouped.
The id comes from the caller's X-Request-ID header when present and is echoed
back on the response.
"""

from __future__ import annotations

import json
import logging
import time
import uuid

from flask import Flask, g, has_request_context, request

QUIET_LOGGERS = ("werkzeug", "apscheduler", "urllib3")
RECORD_FIELDS = ("request_id", "duration_ms", "status")
TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s [%(request_id)s]: %(message)s"
REQUEST_ID_HEADER = "X-Request-ID"
NO_REQUEST = "-"


class RequestContextFilter(logging.Filter):
    """Stamp ``request_id`` onto records; ``-`` outside a request."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = NO_REQUEST
            if has_request_context():
                record.request_id = getattr(g, "request_id", NO_REQUEST)
        return True


class JSONFormatter(logging.Formatter):
    """Emit log records as single-line JSON."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update({f: getattr(record, f) for f in RECORD_FIELDS if hasattr(record, f)})
        if record.exc_info and record.exc_info[0]:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str, ensure_ascii=False)


def build_handler(log_format: str) -> logging.Handler:
    handler = logging.StreamHandler()
    handler.addFilter(RequestContextFilter())
    if log_format == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    return handler


def _register_request_hooks(app: Flask) -> None:
    @app.before_request
    def _start_request():
        g.request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:12]
        g.request_start = time.time()

    @app.after_request
    def _finish_request(response):
        elapsed = round((time.time() - getattr(g, "request_start", time.time())) * 1000)
        response.headers[REQUEST_ID_HEADER] = getattr(g, "request_id", NO_REQUEST)
        app.logger.info(
            "%s %s -> %s in %dms", request.method, request.path, response.status_code, elapsed,
            extra={"duration_ms": elapsed, "status": response.status_code},
        )
        return response


def init_logging(app: Flask) -> None:
    """Install the root handler and the per-request id hooks."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, app.config.get("LOG_LEVEL", "INFO").upper(), logging.INFO))
    root.handlers.clear()
    root.addHandler(build_handler(app.config.get("LOG_FORMAT", "text")))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    _register_request_hooks(app)
