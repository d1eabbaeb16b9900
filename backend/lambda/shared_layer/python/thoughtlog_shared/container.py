"""container.py — Wires concrete collaborators from configuration.

Built once per Lambda execution environment and reused across invocations.
"""
from __future__ import annotations

from typing import Optional

from thoughtlog_shared import config
from thoughtlog_shared.github_auth import GitHubAppAuth
from thoughtlog_shared.github_client import GitHubClient
from thoughtlog_shared.idempotency import DynamoDBIdempotencyLedger
from thoughtlog_shared.secret_provider import SecretsManagerSecretProvider
from thoughtlog_shared.sqs_queue import SqsQueue
from thoughtlog_shared.text_refiner import OpenAITextRefiner
from thoughtlog_shared.thoughtlog_service import ThoughtLogConfig, ThoughtLogService
from thoughtlog_shared.voice_refiner import VoiceCommentRefiner

__all__ = [
    "build_github_auth",
    "build_text_refiner",
    "build_thoughtlog_service",
    "build_voice_comment_refiner",
]


def build_github_auth(github: GitHubClient) -> GitHubAppAuth:
    secret_provider = None
    if not config.GITHUB_PRIVATE_KEY_PEM and config.GITHUB_PRIVATE_KEY_SECRET_ARN:
        secret_provider = SecretsManagerSecretProvider(config.GITHUB_PRIVATE_KEY_SECRET_ARN)
    return GitHubAppAuth(
        config.GITHUB_APP_ID,
        config.GITHUB_INSTALLATION_ID,
        github,
        private_key_pem=config.GITHUB_PRIVATE_KEY_PEM or None,
        secret_provider=secret_provider,
    )


def build_text_refiner() -> Optional[OpenAITextRefiner]:
    if not config.OPENAI_API_KEY_SECRET_ARN:
        return None
    return OpenAITextRefiner(
        SecretsManagerSecretProvider(config.OPENAI_API_KEY_SECRET_ARN),
        model=config.OPENAI_MODEL,
        system_prompt=config.OPENAI_SYSTEM_PROMPT,
    )


def build_thoughtlog_service() -> ThoughtLogService:
    github = GitHubClient()
    queue = SqsQueue(config.VOICE_REFINE_QUEUE_URL) if config.VOICE_REFINE_QUEUE_URL else None
    return ThoughtLogService(
        build_github_auth(github),
        github,
        DynamoDBIdempotencyLedger(config.IDEMPOTENCY_TABLE, ttl_days=config.IDEMPOTENCY_TTL_DAYS),
        ThoughtLogConfig(
            owner=config.GITHUB_OWNER,
            repo=config.GITHUB_REPO,
            default_labels=config.DEFAULT_LABELS,
            voice_refiner_configured=bool(config.OPENAI_API_KEY_SECRET_ARN),
        ),
        queue=queue,
    )


def build_voice_comment_refiner() -> VoiceCommentRefiner:
    github = GitHubClient()
    return VoiceCommentRefiner(build_github_auth(github), github, build_text_refiner())
