"""voice_refiner/lambda_function.py — SQS consumer that polishes voice entries.

Each message references one comment created by the ThoughtLog API for a
``source: "voice"`` entry:

    {"owner": "...", "repo": "...", "issueNumber": 12, "commentId": 345}

The comment body is rewritten by the text refiner with its ``## HH:MM``
header kept. Failed messages are reported through the partial batch
response so only they are redriven (delivery is at-least-once).

Environment variables:
    GITHUB_APP_ID / GITHUB_INSTALLATION_ID
    GITHUB_PRIVATE_KEY_PEM or GITHUB_PRIVATE_KEY_SECRET_ARN
    OPENAI_API_KEY_SECRET_ARN     Secrets Manager id holding the OpenAI key (required)
    OPENAI_MODEL                  default: gpt-4o-mini
    OPENAI_SYSTEM_PROMPT          default: Japanese transcription clean-up prompt
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

from thoughtlog_shared.container import build_voice_comment_refiner
from thoughtlog_shared.voice_refiner import VoiceCommentRefiner, VoiceRefineMessage

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logger = logging.getLogger()
logger.setLevel(logging.INFO)

# ---------------------------------------------------------------------------
# Refiner singleton
# ---------------------------------------------------------------------------

_refiner: Optional[VoiceCommentRefiner] = None


def _get_refiner() -> VoiceCommentRefiner:
    global _refiner
    if _refiner is None:
        _refiner = build_voice_comment_refiner()
    return _refiner


def _process_record(record: Dict[str, Any]) -> None:
    message = VoiceRefineMessage.from_dict(json.loads(record.get("body") or "{}"))
    logger.info(
        "Refining comment %s on %s/%s#%s",
        message.comment_id, message.owner, message.repo, message.issue_number,
    )
    _get_refiner().refine_comment(message)


# ---------------------------------------------------------------------------
# Lambda handler
# ---------------------------------------------------------------------------


def handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """SQS Lambda handler (ReportBatchItemFailures)."""
    records = event.get("Records", [])
    logger.info("voice_refiner: received %d SQS message(s)", len(records))

    failures: List[Dict[str, str]] = []
    for record in records:
        message_id = str(record.get("messageId") or "")
        try:
            _process_record(record)
        except Exception as exc:
            logger.error("Refinement failed for message %s: %s", message_id, exc, exc_info=True)
            failures.append({"itemIdentifier": message_id})

    return {"batchItemFailures": failures}
