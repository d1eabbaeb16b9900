"""idempotency.py — DynamoDB-backed idempotency ledger keyed by request_id.

Record lifecycle:
    claim()       put-if-absent of {status: processing, payload_hash, created_at, ttl}
    mark_done()   status -> done with issue_number / issue_url / comment_id
    mark_failed() status -> failed with a truncated error (best effort)

The conditional put is the single linearization point between concurrent
invocations sharing a request_id. A record never returns to ``processing``;
a ``failed`` record keeps answering 202 until it expires via ``ttl``.

When no table is configured the ledger is disabled: every claim succeeds
and the mark_* calls are no-ops.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from botocore.exceptions import ClientError

from thoughtlog_shared.aws_clients import _get_ddb
from thoughtlog_shared.config import IDEMPOTENCY_ERROR_MAX_CHARS, IDEMPOTENCY_TTL_DAYS
from thoughtlog_shared.serialization import (
    _deserialize,
    _emit_structured_observability,
    _expiry_epoch,
    _expression_values,
    _serialize_item,
    _unix_now,
)

logger = logging.getLogger(__name__)

__all__ = [
    "ClaimResult",
    "DynamoDBIdempotencyLedger",
    "STATUS_DONE",
    "STATUS_FAILED",
    "STATUS_PROCESSING",
]

STATUS_PROCESSING = "processing"
STATUS_DONE = "done"
STATUS_FAILED = "failed"

ERROR_RACE_RETRY = "idempotency_race_retry"
ERROR_PAYLOAD_MISMATCH = "request_id_reused_with_different_payload"


@dataclass
class ClaimResult:
    enabled: bool
    claimed: bool
    status_code: Optional[int] = None
    body: Dict[str, Any] = field(default_factory=dict)


class DynamoDBIdempotencyLedger:
    def __init__(
        self,
        table_name: Optional[str],
        ttl_days: int = IDEMPOTENCY_TTL_DAYS,
        ddb: Any = None,
    ):
        self.table_name = table_name or None
        self.ttl_days = ttl_days
        self._ddb = ddb

    @property
    def enabled(self) -> bool:
        return bool(self.table_name)

    @property
    def ddb(self):
        if self._ddb is None:
            self._ddb = _get_ddb()
        return self._ddb

    def _key(self, request_id: str) -> Dict[str, Any]:
        return _serialize_item({"request_id": request_id})

    def claim(self, request_id: str, payload_hash: str) -> ClaimResult:
        if not self.enabled:
            return ClaimResult(enabled=False, claimed=True)

        now = _unix_now()
        item = {
            "request_id": request_id,
            "status": STATUS_PROCESSING,
            "payload_hash": payload_hash,
            "created_at": now,
            "ttl": _expiry_epoch(now, self.ttl_days),
        }
        try:
            self.ddb.put_item(
                TableName=self.table_name,
                Item=_serialize_item(item),
                ConditionExpression="attribute_not_exists(request_id)",
            )
            return ClaimResult(enabled=True, claimed=True)
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") != "ConditionalCheckFailedException":
                raise

        result = self._existing_outcome(request_id, payload_hash)
        _emit_structured_observability(
            component="idempotency",
            event="claim_conflict",
            request_id=request_id,
            error_code=str(result.body.get("error") or ""),
            extra={"status_code": result.status_code, "status": result.body.get("status", "")},
        )
        return result

    def _existing_outcome(self, request_id: str, payload_hash: str) -> ClaimResult:
        resp = self.ddb.get_item(
            TableName=self.table_name,
            Key=self._key(request_id),
            ConsistentRead=True,
        )
        raw = resp.get("Item")
        if not raw:
            return ClaimResult(
                enabled=True,
                claimed=False,
                status_code=409,
                body={"ok": False, "error": ERROR_RACE_RETRY},
            )

        existing = _deserialize(raw)
        existing_hash = existing.get("payload_hash")
        if existing_hash and existing_hash != payload_hash:
            return ClaimResult(
                enabled=True,
                claimed=False,
                status_code=409,
                body={"ok": False, "error": ERROR_PAYLOAD_MISMATCH},
            )

        if existing.get("status") == STATUS_DONE:
            return ClaimResult(
                enabled=True,
                claimed=False,
                status_code=200,
                body={
                    "ok": True,
                    "idempotent": True,
                    "issue_number": existing.get("issue_number"),
                    "issue_url": existing.get("issue_url"),
                    "comment_id": existing.get("comment_id"),
                },
            )

        return ClaimResult(
            enabled=True,
            claimed=False,
            status_code=202,
            body={
                "ok": True,
                "idempotent": True,
                "status": existing.get("status") or STATUS_PROCESSING,
            },
        )

    def mark_done(
        self,
        request_id: str,
        *,
        issue_number: int,
        issue_url: str,
        comment_id: int,
    ) -> None:
        if not self.enabled:
            return
        self.ddb.update_item(
            TableName=self.table_name,
            Key=self._key(request_id),
            UpdateExpression="SET #s = :done, issue_number = :n, issue_url = :u, comment_id = :c",
            ExpressionAttributeNames={"#s": "status"},
            ExpressionAttributeValues=_expression_values(
                done=STATUS_DONE, n=issue_number, u=issue_url, c=comment_id
            ),
        )

    def mark_failed(self, request_id: str, err_msg: str) -> None:
        """Best effort: never raises, so the triggering error is not masked.

        Done records are terminal and are left untouched.
        """
        if not self.enabled:
            return
        try:
            self.ddb.update_item(
                TableName=self.table_name,
                Key=self._key(request_id),
                UpdateExpression="SET #s = :fail, #e = :err",
                ConditionExpression="attribute_exists(request_id) AND #s <> :done",
                ExpressionAttributeNames={"#s": "status", "#e": "error"},
                ExpressionAttributeValues=_expression_values(
                    fail=STATUS_FAILED,
                    done=STATUS_DONE,
                    err=str(err_msg)[:IDEMPOTENCY_ERROR_MAX_CHARS],
                ),
            )
        except Exception as exc:
            logger.warning("idempotency mark_failed skipped for %s: %s", request_id, exc)
