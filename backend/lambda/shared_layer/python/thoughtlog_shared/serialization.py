"""serialization.py — DynamoDB attribute marshalling, clock helpers, structured log lines.

Ledger records only hold strings and integers, so numbers read back from
DynamoDB are returned as ``int`` whenever they are integral.
"""
from __future__ import annotations

import datetime as dt
import json
import time
from decimal import Decimal
from typing import Any, Dict, Optional

from boto3.dynamodb.types import TypeDeserializer, TypeSerializer

from thoughtlog_shared.config import logger

__all__ = [
    "_deserialize",
    "_emit_structured_observability",
    "_expiry_epoch",
    "_expression_values",
    "_now_z",
    "_serialize",
    "_serialize_item",
    "_unix_now",
]

_SECONDS_PER_DAY = 24 * 60 * 60

_SER = TypeSerializer()
_DESER = TypeDeserializer()


# ---------------------------------------------------------------------------
# DynamoDB attribute values
# ---------------------------------------------------------------------------


def _serialize(value: Any) -> Dict[str, Any]:
    # TypeSerializer rejects float; route it through Decimal.
    if isinstance(value, float):
        value = Decimal(str(value))
    return _SER.serialize(value)


def _serialize_item(item: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
    """Marshal a plain dict into a low-level ``Item``/``Key`` map."""
    return {name: _serialize(value) for name, value in item.items()}


def _expression_values(**values: Any) -> Dict[str, Dict[str, Any]]:
    """``ExpressionAttributeValues`` from keyword args: ``done=...`` becomes ``":done"``."""
    return {f":{name}": _serialize(value) for name, value in values.items()}


def _deserialize(item: Dict[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for name, raw in item.items():
        value = _DESER.deserialize(raw)
        if isinstance(value, Decimal):
            value = int(value) if value == value.to_integral_value() else float(value)
        out[name] = value
    return out


# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------


def _now_z() -> str:
    return dt.datetime.now(dt.timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _unix_now() -> int:
    return int(time.time())


def _expiry_epoch(created_at: int, days: int) -> int:
    """Epoch seconds used for the DynamoDB TTL attribute."""
    return created_at + days * _SECONDS_PER_DAY


# ---------------------------------------------------------------------------
# Observability
# ---------------------------------------------------------------------------


def _emit_structured_observability(
    *,
    component: str,
    event: str,
    request_id: Optional[str] = None,
    latency_ms: Optional[int] = None,
    error_code: Optional[str] = None,
    extra: Optional[Dict[str, Any]] = None,
) -> None:
    """Log one ``[OBSERVABILITY] {json}`` line for log-based metrics."""
    payload: Dict[str, Any] = {
        "timestamp": _now_z(),
        "component": component,
        "event": event,
        "request_id": str(request_id or ""),
        "latency_ms": int(max(0, latency_ms or 0)),
        "error_code": str(error_code or ""),
    }
    if extra:
        payload.update(extra)
    logger.info("[OBSERVABILITY] %s", json.dumps(payload, sort_keys=True, default=str, ensure_ascii=False))
