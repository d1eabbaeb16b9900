"""http_utils.py — API Gateway response helpers and event parsing.

Handles both HTTP API (v2) and REST API (v1) proxy event shapes.
"""
from __future__ import annotations

import base64
import json
import logging
from typing import Any, Dict, Tuple

logger = logging.getLogger(__name__)

__all__ = [
    "_error",
    "_json_body",
    "_path_method",
    "_raw_body",
    "_response",
    "_text_response",
]


def _response(status_code: int, body: Any) -> Dict[str, Any]:
    """Build a JSON API Gateway response."""
    return {
        "statusCode": status_code,
        "headers": {"Content-Type": "application/json"},
        "body": json.dumps(body, default=str, ensure_ascii=False),
    }


def _text_response(body: str, status_code: int = 200) -> Dict[str, Any]:
    """Build a plain-text API Gateway response."""
    return {
        "statusCode": status_code,
        "headers": {"Content-Type": "text/plain; charset=utf-8"},
        "body": body,
    }


def _error(status_code: int, message: str, **extra: Any) -> Dict[str, Any]:
    """Build a standard error response.

    Args:
        status_code: HTTP status code.
        message: Machine-readable error code or message.
        **extra: Additional fields merged into the response payload.
    """
    payload: Dict[str, Any] = {"ok": False, "error": message}
    if extra:
        payload.update(extra)
    return _response(status_code, payload)


def _raw_body(event: Dict[str, Any]) -> str:
    """Return the request body as text, decoding base64 when flagged."""
    raw = event.get("body")
    if not isinstance(raw, str):
        return ""
    if event.get("isBase64Encoded"):
        return base64.b64decode(raw).decode("utf-8")
    return raw


def _json_body(event: Dict[str, Any]) -> Dict[str, Any]:
    """Parse the JSON request body.

    An already-decoded object body is returned as is; an empty body is ``{}``.
    Raises ``ValueError`` (``json.JSONDecodeError``) on malformed JSON.
    """
    body = event.get("body")
    if isinstance(body, dict):
        return body
    text = _raw_body(event)
    if not text:
        return {}
    parsed = json.loads(text)
    if not isinstance(parsed, dict):
        raise ValueError("request body must be a JSON object")
    return parsed


def _path_method(event: Dict[str, Any]) -> Tuple[str, str]:
    """Extract HTTP method and path from an API Gateway v1 or v2 event."""
    rc = event.get("requestContext") or {}
    http = rc.get("http") or {}
    method = (http.get("method") or event.get("httpMethod") or "POST").upper()
    path = event.get("rawPath") or http.get("path") or event.get("path") or ""
    return method, path
