from __future__ import annotations

import json
import logging
import time
import uuid
from typing import Any, Dict, Optional

LOGGER_NAME = "kms_signer"

_logger = logging.getLogger(LOGGER_NAME)
_DEFAULTS: Dict[str, Any] = {"service": "kms-signer"}


def configure_logging(level: str = "info", *, service_name: str | None = None) -> None:
    """
    Attach a plain stream handler emitting one JSON object per line.

    Safe to call more than once; the handler is only added the first time.
    """
    _logger.setLevel(getattr(logging, (level or "info").strip().upper(), logging.INFO))
    if not _logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(message)s"))
        _logger.addHandler(handler)
    _logger.propagate = False
    if service_name:
        _DEFAULTS["service"] = service_name


def build_log_context(**fields: Any) -> Dict[str, Any]:
    """
    Build a context dict that is merged into every event logged with it.

    A fresh `request_id` is generated unless one is supplied.
    """
    ctx: Dict[str, Any] = {"request_id": uuid.uuid4().hex[:16]}
    ctx.update({k: v for k, v in fields.items() if v is not None})
    return ctx


def _jsonable(v: Any) -> Any:
    if isinstance(v, (bytes, bytearray)):
        return "0x" + bytes(v).hex()
    return v


def log_event(
    event: str,
    *,
    ctx: Optional[Dict[str, Any]] = None,
    data: Optional[Dict[str, Any]] = None,
    level: int = logging.INFO,
) -> None:
    if not _logger.isEnabledFor(level):
        return
    record: Dict[str, Any] = {"ts_ms": int(time.time() * 1000), "event": event, **_DEFAULTS}
    if ctx:
        record.update(ctx)
    if data:
        record["data"] = {k: _jsonable(v) for k, v in data.items()}
    _logger.log(level, json.dumps(record, sort_keys=True, default=str))
