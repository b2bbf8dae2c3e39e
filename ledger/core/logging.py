"""
Logging setup - JSON or plain text output on the root logger.

Modules log through ``logging.getLogger(__name__)``; this only wires handlers.
"""

import json
import logging
from datetime import datetime, timezone

from ledger.core.config import get_settings

_EXTRA_FIELDS = (
    "entry_id",
    "entry_number",
    "period",
    "account_id",
    "bank_account_id",
    "asset_id",
    "error_code",
)


class JSONFormatter(logging.Formatter):
    """Format records as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        log = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in _EXTRA_FIELDS:
            val = record.__dict__.get(key)
            if val is not None:
                log[key] = str(val)
        if record.exc_info:
            log["exception"] = self.formatException(record.exc_info)
        return json.dumps(log, ensure_ascii=False)


def setup_logging(level: str | None = None, fmt: str | None = None) -> logging.Handler:
    """Install a single stream handler on the root logger."""
    settings = get_settings()
    level = level or settings.log_level
    fmt = fmt or settings.log_format

    handler = logging.StreamHandler()
    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s: %(message)s",
        ))

    root = logging.getLogger()
    for existing in list(root.handlers):
        if getattr(existing, "_ledger_handler", False):
            root.removeHandler(existing)
    handler._ledger_handler = True  # type: ignore[attr-defined]
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    return handler
