"""Process-wide logging setup.

Modules log through ``logging.getLogger(__name__)``; this module only decides
where records go and what they look like.
"""

from __future__ import annotations

import json
import logging
from contextvars import ContextVar
from datetime import datetime, timezone

from fieldflow.config import settings

request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)

_CONFIGURED = False


class RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "request_id", None):
            record.request_id = request_id_var.get() or "-"
        return True


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", None),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def configure_logging(level: str | None = None, json_output: bool | None = None) -> None:
    global _CONFIGURED
    if _CONFIGURED:
        return
    handler = logging.StreamHandler()
    handler.addFilter(RequestIdFilter())
    use_json = settings.log_json if json_output is None else json_output
    if use_json:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s %(levelname)s [%(name)s] [%(request_id)s] %(message)s"
            )
        )
    root = logging.getLogger()
    root.addHandler(handler)
    root.setLevel((level or settings.log_level).upper())
    # httpx logs every request at INFO; cross-service calls are logged by the clients.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    _CONFIGURED = True
