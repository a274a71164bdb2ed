"""
Central logging setup.

Every log line carries the request id of the HTTP request it was emitted
under (or "-" outside a request), so one estimate can be traced from the
access line through matching, generation and persistence.
"""

from __future__ import annotations

import logging
import logging.config
import time
import uuid
from typing import Any, Dict, Optional

from flask import Flask, g, has_request_context, request

DEFAULT_FORMAT = "%(asctime)s %(levelname)s %(name)s [%(request_id)s] %(message)s"
DEFAULT_QUIET = ("httpx", "openai", "urllib3")


class RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        rid = None
        if has_request_context():
            rid = getattr(g, "request_id", None)
        record.request_id = rid or "-"
        return True


def setup_logging(cfg: Optional[Dict[str, Any]] = None) -> None:
    log_cfg = (cfg or {}).get("logging", {}) or {}
    level = str(log_cfg.get("level", "INFO")).upper()
    fmt = str(log_cfg.get("format") or DEFAULT_FORMAT)
    # SDK/transport loggers log every HTTP call at INFO
    quiet = log_cfg.get("quiet", DEFAULT_QUIET) or ()

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "filters": {"request_id": {"()": RequestIdFilter}},
            "formatters": {"default": {"format": fmt}},
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                    "filters": ["request_id"],
                }
            },
            "root": {"handlers": ["console"], "level": level},
            "loggers": {name: {"level": "WARNING"} for name in quiet},
        }
    )


def init_request_logging(app: Flask) -> None:
    access = logging.getLogger("http")

    @app.before_request
    def _tag_request() -> None:
        g.request_started = time.perf_counter()
        g.request_id = request.headers.get("X-Request-Id") or uuid.uuid4().hex

    @app.after_request
    def _access_line(response):  # type: ignore[no-untyped-def]
        started = getattr(g, "request_started", None)
        elapsed = None if started is None else round((time.perf_counter() - started) * 1000, 1)
        access.info("%s %s -> %s in %sms", request.method, request.path, response.status_code, elapsed)
        response.headers["X-Request-Id"] = getattr(g, "request_id", "")
        return response
