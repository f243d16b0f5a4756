"""Logging configuration for stockroom.

LOG_JSON picks one of two line shapes:

  _ContainerFormatter: one human-readable line per record, for local
    dev and `docker compose logs`.  Tenant context rides along as
    ``org=... user=...`` when the record carries it.

  _JsonFormatter: one JSON object per line for log aggregation.  The
    request and tenant fields are top-level keys, so a query like
    ``level == "WARNING" AND org_id == "5b0c..."`` finds every denial
    in one organization.

Tokens, cookies and passwords are never passed to a logger.  As a last
line, _RedactSecrets masks anything JWT-shaped that slips into a
message anyway.
"""

from __future__ import annotations

import json
import logging
import re
import sys
from contextvars import ContextVar

# Set per request by RequestContextMiddleware
request_id_var: ContextVar[str] = ContextVar("request_id", default="-")

# Fields that RequestContextMiddleware (or an ``extra=`` at the call
# site) may attach to a record
CONTEXT_FIELDS = (
    "request_id",
    "method",
    "path",
    "org_id",
    "user_id",
    "status_code",
    "duration_ms",
)

_DATEFMT = "%Y-%m-%dT%H:%M:%S%z"

# header.payload.signature, base64url
_JWT_RE = re.compile(r"eyJ[\w-]+\.[\w-]+\.[\w-]+")

_NOISY_LOGGERS = (
    "uvicorn",
    "uvicorn.access",
    "uvicorn.error",
    "httpcore",
    "httpx",
    "sqlalchemy.engine",
    "aiosqlite",
)


class _RequestIdFilter(logging.Filter):
    # Handler-level: logger-level filters do not see propagated records
    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = request_id_var.get()  # type: ignore[attr-defined]
        return True


class _RedactSecrets(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        if _JWT_RE.search(message):
            record.msg = _JWT_RE.sub("[redacted-jwt]", message)
            record.args = None
        return True


class _ContainerFormatter(logging.Formatter):
    """``<ts> <LEVEL> <logger>  <message>`` plus, when present:

    - ``org=<id> user=<id>`` for tenant-scoped records
    - ``[file:line]`` from WARNING up, to find the guard that fired
    - the traceback when exc_info is set
    """

    def __init__(self) -> None:
        super().__init__(datefmt=_DATEFMT)

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        stamp = super().formatTime(record, datefmt)
        # Milliseconds go in front of the +HHMM offset
        return f"{stamp[:-5]}.{int(record.msecs):03d}{stamp[-5:]}"

    def format(self, record: logging.LogRecord) -> str:
        parts = [
            self.formatTime(record, self.datefmt),
            f"{record.levelname:<8}",
            record.name,
            f" {record.getMessage()}",
        ]
        org_id = getattr(record, "org_id", None)
        if org_id is not None:
            parts.append(f" org={org_id} user={getattr(record, 'user_id', '-')}")
        if record.levelno >= logging.WARNING:
            parts.append(f" [{record.filename}:{record.lineno}]")

        line = " ".join(parts)
        if record.exc_info and record.exc_info[0] is not None:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


class _JsonFormatter(logging.Formatter):
    def __init__(self) -> None:
        super().__init__(datefmt=_DATEFMT)

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, object] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(
            (key, getattr(record, key))
            for key in CONTEXT_FIELDS
            if getattr(record, key, None) is not None
        )
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logging(level_name: str, *, json_format: bool = False) -> None:
    """Point the root logger at stdout with the configured formatter.

    Unknown level names fall back to INFO.  Library loggers are held at
    WARNING or above so DEBUG stays readable.
    """
    level = getattr(logging, level_name.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(_JsonFormatter() if json_format else _ContainerFormatter())
    handler.addFilter(_RequestIdFilter())
    handler.addFilter(_RedactSecrets())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
