"""voice_refiner.py — Rewrites one voice-captured comment with the text refiner.

The ``## HH:MM`` header line is preserved verbatim; only the content below it
is replaced. Failures propagate to the queue consumer, which owns redrive.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict

from thoughtlog_shared.errors import ValidationError
from thoughtlog_shared.formatting import parse_timestamp_header
from thoughtlog_shared.serialization import _emit_structured_observability

logger = logging.getLogger(__name__)

__all__ = ["VoiceCommentRefiner", "VoiceRefineMessage"]


@dataclass
class VoiceRefineMessage:
    owner: str
    repo: str
    issue_number: int
    comment_id: int

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VoiceRefineMessage":
        if not isinstance(data, dict):
            raise ValidationError("refinement message must be a JSON object")
        missing = [k for k in ("owner", "repo", "commentId") if not data.get(k)]
        if missing:
            raise ValidationError(f"refinement message missing fields: {', '.join(missing)}")
        return cls(
            owner=str(data["owner"]),
            repo=str(data["repo"]),
            issue_number=int(data.get("issueNumber") or 0),
            comment_id=int(data["commentId"]),
        )


class VoiceCommentRefiner:
    def __init__(self, auth: Any, github: Any, text_refiner: Any):
        self.auth = auth
        self.github = github
        self.text_refiner = text_refiner

    def refine_comment(self, message: VoiceRefineMessage) -> str:
        """Refine the comment in place and return the new body."""
        if self.text_refiner is None:
            raise ValidationError("text refiner is not configured (OPENAI_API_KEY_SECRET_ARN)")

        started = time.perf_counter()
        token = self.auth.get_installation_token()
        comment = self.github.get_comment(
            owner=message.owner, repo=message.repo, comment_id=message.comment_id, token=token
        )

        header, content = parse_timestamp_header(comment.get("body"))
        refined = self.text_refiner.refine(content)
        new_body = f"{header}{refined}\n"

        self.github.update_comment(
            owner=message.owner,
            repo=message.repo,
            comment_id=message.comment_id,
            body=new_body,
            token=token,
        )
        _emit_structured_observability(
            component="voice_refiner",
            event="comment_refined",
            latency_ms=int((time.perf_counter() - started) * 1000),
            extra={
                "owner": message.owner,
                "repo": message.repo,
                "issue_number": message.issue_number,
                "comment_id": message.comment_id,
                "had_header": bool(header),
            },
        )
        return new_body
