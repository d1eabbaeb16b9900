"""thoughtlog_api/lambda_function.py — ThoughtLog HTTP API

Lambda behind API Gateway (HTTP API v2 or REST v1 proxy) that appends
journal entries to one GitHub issue per JST calendar day.

Routes:
    POST   /                  create an entry (idempotent on request_id)
    GET    /log/YYYY-MM-DD    all comments of the day's issue, text/plain
    PUT    /log/YYYY-MM-DD    replace the day's issue body and close it

Auth:
    Delegated to the API Gateway JWT authorizer; GitHub access uses a
    GitHub App installation token.

Environment variables:
    GITHUB_OWNER / GITHUB_REPO        target repository (required)
    DEFAULT_LABELS                    default: thoughtlog
    GITHUB_APP_ID                     GitHub App numeric ID
    GITHUB_INSTALLATION_ID            installation ID for the repository owner
    GITHUB_PRIVATE_KEY_PEM            inline PEM (optional)
    GITHUB_PRIVATE_KEY_SECRET_ARN     Secrets Manager id for the PEM when not inline
    IDEMPOTENCY_TABLE                 DynamoDB table; unset disables idempotency
    IDEMPOTENCY_TTL_DAYS              default: 14
    VOICE_REFINE_QUEUE_URL            SQS queue for voice refinement (optional)
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Optional

from thoughtlog_shared import config
from thoughtlog_shared.container import build_thoughtlog_service
from thoughtlog_shared.errors import ValidationError
from thoughtlog_shared.formatting import is_date_key
from thoughtlog_shared.http_utils import _error, _json_body, _path_method, _response, _text_response
from thoughtlog_shared.thoughtlog_service import ThoughtLogService

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logger = logging.getLogger()
logger.setLevel(logging.INFO)

_LOG_PATH_RE = re.compile(r"/log/(\d{4}-\d{2}-\d{2})$")

# ---------------------------------------------------------------------------
# Service singleton
# ---------------------------------------------------------------------------

_service: Optional[ThoughtLogService] = None


def _get_service() -> ThoughtLogService:
    global _service
    if _service is None:
        _service = build_thoughtlog_service()
    return _service


def _date_param(path: str) -> Optional[str]:
    match = _LOG_PATH_RE.search(path or "")
    return match.group(1) if match else None


# ---------------------------------------------------------------------------
# Route handlers
# ---------------------------------------------------------------------------


def _handle_get_log(date_key: str) -> Dict[str, Any]:
    outcome = _get_service().get_log(date_key)
    if outcome.kind == "not_found":
        return _error(404, "not_found", date=outcome.date)
    return _text_response(outcome.body)


def _handle_put_log(event: Dict[str, Any], date_key: str) -> Dict[str, Any]:
    try:
        body = _json_body(event)
    except ValueError as exc:
        return _error(400, "invalid_json", detail=str(exc))

    raw = body.get("raw")
    new_body = "" if raw is None else str(raw).strip()
    if not new_body:
        return _error(400, "missing_body")

    outcome = _get_service().update_log(date_key, new_body)
    if outcome.kind == "not_found":
        return _error(404, "not_found", date=outcome.date)
    return _response(200, {
        "ok": True,
        "date": outcome.date,
        "issue_number": outcome.issue_number,
        "issue_url": outcome.issue_url,
    })


def _handle_create_entry(event: Dict[str, Any]) -> Dict[str, Any]:
    try:
        payload = _json_body(event)
    except ValueError as exc:
        return _error(400, "invalid_json", detail=str(exc))

    if not str(payload.get("request_id") or "").strip():
        return _error(400, "missing_request_id")

    outcome = _get_service().create_entry(payload)
    if outcome.kind == "idempotent":
        return _response(outcome.status_code, outcome.body)
    return _response(201, {
        "ok": True,
        "date": outcome.date,
        "issue_number": outcome.issue_number,
        "issue_url": outcome.issue_url,
        "comment_id": outcome.comment_id,
    })


# ---------------------------------------------------------------------------
# Handler
# ---------------------------------------------------------------------------


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    method, path = _path_method(event)

    if not config.GITHUB_OWNER or not config.GITHUB_REPO:
        return _error(500, "missing_repo_env")

    date_key = _date_param(path)
    if method in ("GET", "PUT") and date_key and not is_date_key(date_key):
        return _error(400, "invalid_date", date=date_key)

    try:
        if method == "GET" and date_key:
            return _handle_get_log(date_key)
        if method == "PUT" and date_key:
            return _handle_put_log(event, date_key)
        if method != "POST":
            return _error(405, "method_not_allowed")
        return _handle_create_entry(event)
    except ValidationError as exc:
        logger.warning("Rejected %s %s: %s", method, path, exc)
        return _error(400, str(exc))
    except Exception as exc:
        logger.error("Unhandled error on %s %s: %s", method, path, exc, exc_info=True)
        return _error(500, str(exc))
