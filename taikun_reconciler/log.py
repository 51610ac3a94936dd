"""Structured logging for the reconciler.

One compact line per event. ``key=value`` pairs by default;
``TAIKUN_LOG_FORMAT=json`` switches to JSON lines. Payloads go through
``safe_log_json`` so tokens and passwords never reach the log.
"""

from __future__ import annotations

import datetime
import json
import logging
import os
from typing import Any, Optional

from taikun_reconciler.secrets import safe_log_json

_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def configure_logging(level: Optional[str] = None, fmt: Optional[str] = None) -> None:
    """Install a stderr handler on the ``taikun`` logger tree."""
    level = (level or os.environ.get("TAIKUN_LOG_LEVEL", "WARNING")).upper()
    if level not in _LEVELS:
        level = "WARNING"
    fmt = fmt or os.environ.get("TAIKUN_LOG_FORMAT", "text")

    root = logging.getLogger("taikun")
    root.setLevel(level)
    for handler in list(root.handlers):
        root.removeHandler(handler)
    handler = logging.StreamHandler()
    if fmt == "json":
        handler.setFormatter(logging.Formatter("%(message)s"))
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(name)s %(levelname)s %(message)s", datefmt="%Y-%m-%dT%H:%M:%S")
        )
    root.addHandler(handler)
    root.propagate = False


def log_event(logger: logging.Logger, event: str, level: int = logging.INFO, **fields: Any) -> None:
    """Emit ``event`` with ``fields`` in the configured format."""
    if not logger.isEnabledFor(level):
        return
    payload = safe_log_json(fields)
    if os.environ.get("TAIKUN_LOG_FORMAT", "text") == "json":
        record = {
            "ts": datetime.datetime.now(datetime.timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": logging.getLevelName(level),
            "event": event,
        }
        record.update(payload)
        logger.log(level, json.dumps(record, separators=(",", ":"), default=str))
    else:
        pairs = " ".join(f"{k}={_text(v)}" for k, v in payload.items())
        logger.log(level, "event=%s %s", event, pairs)


def _text(value: Any) -> str:
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"), default=str)
    return str(value)
