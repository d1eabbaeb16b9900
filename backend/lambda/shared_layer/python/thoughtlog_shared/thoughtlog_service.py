"""thoughtlog_service.py — Entry orchestration for daily ThoughtLog issues.

create_entry runs one strictly sequential pipeline per request:
    validate request_id -> date key / labels / body -> payload hash
    -> ledger claim (idempotent outcome returned when not claimed)
    -> installation token -> find-or-create daily issue -> add comment
    -> ledger done -> (voice only) enqueue refinement, best effort

Any failure between the claim and the ledger update marks the ledger record
failed and re-raises the original exception.

Known race: two different request_ids for the same date can both miss the
search and create two issues for one day. Search-then-create is not atomic
against GitHub and nothing here serializes it.
"""
from __future__ import annotations

import hashlib
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from thoughtlog_shared.config import VOICE_SOURCE
from thoughtlog_shared.errors import ValidationError
from thoughtlog_shared.formatting import (
    format_entry,
    get_date_key_jst,
    parse_captured_at,
    parse_labels,
)
from thoughtlog_shared.serialization import _emit_structured_observability

logger = logging.getLogger(__name__)

__all__ = [
    "EntryCreated",
    "IdempotentReplay",
    "LogFound",
    "LogNotFound",
    "LogUpdated",
    "ThoughtLogConfig",
    "ThoughtLogService",
    "compute_payload_hash",
]


@dataclass
class ThoughtLogConfig:
    owner: str
    repo: str
    default_labels: str = "thoughtlog"
    voice_refiner_configured: bool = True


# ---------------------------------------------------------------------------
# Outcomes
# ---------------------------------------------------------------------------


@dataclass
class EntryCreated:
    date: str
    issue_number: int
    issue_url: str
    comment_id: int
    kind: str = field(default="created", init=False)


@dataclass
class IdempotentReplay:
    status_code: int
    body: Dict[str, Any]
    kind: str = field(default="idempotent", init=False)


@dataclass
class LogFound:
    body: str
    kind: str = field(default="found", init=False)


@dataclass
class LogNotFound:
    date: str
    kind: str = field(default="not_found", init=False)


@dataclass
class LogUpdated:
    date: str
    issue_number: int
    issue_url: str
    kind: str = field(default="updated", init=False)


def compute_payload_hash(date_key: str, entry: str, labels: list) -> str:
    """SHA-256 over the compact JSON of {dateKey, entry, labels} (key order fixed)."""
    canonical = json.dumps(
        {"dateKey": date_key, "entry": entry, "labels": labels},
        separators=(",", ":"),
        ensure_ascii=False,
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class ThoughtLogService:
    """Create / read / update daily logs.

    Collaborators are injected once per process:
        auth      .get_installation_token()
        github    GitHubClient-compatible issue/comment operations
        ledger    .claim() / .mark_done() / .mark_failed()
        queue     optional .send_message(str) for voice refinement
    """

    def __init__(
        self,
        auth: Any,
        github: Any,
        ledger: Any,
        config: ThoughtLogConfig,
        queue: Any = None,
    ):
        self.auth = auth
        self.github = github
        self.ledger = ledger
        self.config = config
        self.queue = queue

    def _find_or_create_issue(self, date_key: str, labels: list, token: str) -> Dict[str, Any]:
        owner, repo = self.config.owner, self.config.repo
        issue = self.github.find_daily_issue(
            owner=owner, repo=repo, date_key=date_key, labels=labels, token=token
        )
        if not issue:
            logger.info("No open issue for %s; creating one", date_key)
            return self.github.create_daily_issue(
                owner=owner, repo=repo, date_key=date_key, labels=labels, token=token
            )
        if not issue.get("html_url"):
            return self.github.get_issue(
                owner=owner, repo=repo, issue_number=issue["number"], token=token
            )
        return issue

    def create_entry(self, payload: Dict[str, Any]) -> Any:
        payload = payload or {}
        request_id = str(payload.get("request_id") or "").strip()
        if not request_id:
            raise ValidationError("request_id must be a non-empty string")

        # One clock read, so the date key and the time header agree at midnight.
        captured = parse_captured_at(payload)
        date_key = get_date_key_jst(payload, now=captured)
        labels = parse_labels(self.config.default_labels, payload.get("labels"))
        entry = format_entry(payload, now=captured)
        payload_hash = compute_payload_hash(date_key, entry, labels)

        claim = self.ledger.claim(request_id, payload_hash)
        if claim.enabled and not claim.claimed:
            return IdempotentReplay(status_code=claim.status_code, body=claim.body)

        started = time.perf_counter()
        try:
            token = self.auth.get_installation_token()
            issue = self._find_or_create_issue(date_key, labels, token)
            comment = self.github.add_comment(
                owner=self.config.owner,
                repo=self.config.repo,
                issue_number=issue["number"],
                comment_body=entry,
                token=token,
            )
            self.ledger.mark_done(
                request_id,
                issue_number=issue["number"],
                issue_url=issue.get("html_url"),
                comment_id=comment["id"],
            )
        except Exception as exc:
            logger.error("create_entry failed for request_id=%s: %s", request_id, exc)
            _emit_structured_observability(
                component="thoughtlog",
                event="entry_failed",
                request_id=request_id,
                latency_ms=int((time.perf_counter() - started) * 1000),
                error_code=exc.__class__.__name__,
            )
            self.ledger.mark_failed(request_id, str(exc))
            raise

        outcome = EntryCreated(
            date=date_key,
            issue_number=issue["number"],
            issue_url=issue.get("html_url"),
            comment_id=comment["id"],
        )
        _emit_structured_observability(
            component="thoughtlog",
            event="entry_created",
            request_id=request_id,
            latency_ms=int((time.perf_counter() - started) * 1000),
            extra={"date": date_key, "issue_number": outcome.issue_number, "comment_id": outcome.comment_id},
        )

        if payload.get("source") == VOICE_SOURCE and self.queue is not None:
            if not self.config.voice_refiner_configured:
                logger.warning(
                    "Voice entry %s queued but no text refiner is configured "
                    "(OPENAI_API_KEY_SECRET_ARN); the refinement message will fail",
                    request_id,
                )
            self._enqueue_refinement(request_id, outcome)
        return outcome

    def _enqueue_refinement(self, request_id: str, outcome: EntryCreated) -> None:
        message = {
            "owner": self.config.owner,
            "repo": self.config.repo,
            "issueNumber": outcome.issue_number,
            "commentId": outcome.comment_id,
        }
        try:
            self.queue.send_message(json.dumps(message))
        except Exception as exc:
            logger.error("Voice refinement enqueue failed for request_id=%s: %s", request_id, exc, exc_info=True)
            _emit_structured_observability(
                component="thoughtlog",
                event="refinement_enqueue_failed",
                request_id=request_id,
                error_code=exc.__class__.__name__,
                extra={"comment_id": outcome.comment_id},
            )
            return
        _emit_structured_observability(
            component="thoughtlog",
            event="refinement_enqueued",
            request_id=request_id,
            extra={"comment_id": outcome.comment_id},
        )

    def get_log(self, date_key: str) -> Any:
        token = self.auth.get_installation_token()
        labels = parse_labels(self.config.default_labels, [])
        owner, repo = self.config.owner, self.config.repo

        issue = self.github.find_daily_issue(
            owner=owner, repo=repo, date_key=date_key, labels=labels, token=token
        )
        if not issue:
            return LogNotFound(date=date_key)

        comments = self.github.get_issue_comments(
            owner=owner, repo=repo, issue_number=issue["number"], token=token
        )
        return LogFound(body="\n".join(c.get("body") or "" for c in comments))

    def update_log(self, date_key: str, new_body: str) -> Any:
        """Replace the daily issue body and close it. Ledger and queue are not involved."""
        token = self.auth.get_installation_token()
        labels = parse_labels(self.config.default_labels, [])
        owner, repo = self.config.owner, self.config.repo

        issue = self.github.find_daily_issue(
            owner=owner, repo=repo, date_key=date_key, labels=labels, token=token
        )
        if not issue:
            return LogNotFound(date=date_key)

        self.github.update_issue(
            owner=owner, repo=repo, issue_number=issue["number"], body=new_body, token=token
        )
        closed = self.github.close_issue(
            owner=owner, repo=repo, issue_number=issue["number"], token=token
        )
        return LogUpdated(date=date_key, issue_number=closed["number"], issue_url=closed.get("html_url"))
