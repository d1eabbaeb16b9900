"""config.py — Environment variables and constants for the ThoughtLog Lambdas.

Every value is read once at import time. Tests override the module
constants directly or pass explicit values to the constructors.
"""
from __future__ import annotations

import logging
import os

__all__ = [
    "AWS_REGION",
    "CANONICAL_LABEL",
    "DEFAULT_LABELS",
    "DEFAULT_OPENAI_MODEL",
    "DEFAULT_OPENAI_SYSTEM_PROMPT",
    "GITHUB_API_BASE",
    "GITHUB_API_TIMEOUT_SECONDS",
    "GITHUB_API_VERSION",
    "GITHUB_APP_ID",
    "GITHUB_INSTALLATION_ID",
    "GITHUB_OWNER",
    "GITHUB_PRIVATE_KEY_PEM",
    "GITHUB_PRIVATE_KEY_SECRET_ARN",
    "GITHUB_REPO",
    "GITHUB_USER_AGENT",
    "IDEMPOTENCY_ERROR_MAX_CHARS",
    "IDEMPOTENCY_TABLE",
    "IDEMPOTENCY_TTL_DAYS",
    "OPENAI_API_BASE_URL",
    "OPENAI_API_KEY_SECRET_ARN",
    "OPENAI_API_TIMEOUT_SECONDS",
    "OPENAI_MODEL",
    "OPENAI_SYSTEM_PROMPT",
    "SECRET_CACHE_TTL_SECONDS",
    "VOICE_REFINE_QUEUE_URL",
    "VOICE_SOURCE",
    "logger",
]


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name, "")
    try:
        return int(raw) if raw.strip() else default
    except ValueError:
        return default


# ---------------------------------------------------------------------------
# Repository / labels
# ---------------------------------------------------------------------------

GITHUB_OWNER = os.environ.get("GITHUB_OWNER", "")
GITHUB_REPO = os.environ.get("GITHUB_REPO", "")
DEFAULT_LABELS = os.environ.get("DEFAULT_LABELS", "thoughtlog")
CANONICAL_LABEL = "thoughtlog"
VOICE_SOURCE = "voice"

# ---------------------------------------------------------------------------
# GitHub App
# ---------------------------------------------------------------------------

GITHUB_APP_ID = os.environ.get("GITHUB_APP_ID", "")
GITHUB_INSTALLATION_ID = os.environ.get("GITHUB_INSTALLATION_ID", "")
GITHUB_PRIVATE_KEY_PEM = os.environ.get("GITHUB_PRIVATE_KEY_PEM", "")
GITHUB_PRIVATE_KEY_SECRET_ARN = os.environ.get("GITHUB_PRIVATE_KEY_SECRET_ARN", "")
GITHUB_API_BASE = "https://api.github.com"
GITHUB_API_VERSION = "2022-11-28"
GITHUB_USER_AGENT = "thoughtlog-lambda"
GITHUB_API_TIMEOUT_SECONDS = _int_env("GITHUB_API_TIMEOUT_SECONDS", 15)

# ---------------------------------------------------------------------------
# Idempotency ledger
# ---------------------------------------------------------------------------

IDEMPOTENCY_TABLE = os.environ.get("IDEMPOTENCY_TABLE", "")
IDEMPOTENCY_TTL_DAYS = _int_env("IDEMPOTENCY_TTL_DAYS", 14)
IDEMPOTENCY_ERROR_MAX_CHARS = 900

# ---------------------------------------------------------------------------
# Voice refinement (SQS + OpenAI)
# ---------------------------------------------------------------------------

VOICE_REFINE_QUEUE_URL = os.environ.get("VOICE_REFINE_QUEUE_URL", "")
OPENAI_API_KEY_SECRET_ARN = os.environ.get("OPENAI_API_KEY_SECRET_ARN", "")
OPENAI_API_BASE_URL = os.environ.get("OPENAI_API_BASE_URL", "https://api.openai.com")
OPENAI_API_TIMEOUT_SECONDS = _int_env("OPENAI_API_TIMEOUT_SECONDS", 30)
DEFAULT_OPENAI_MODEL = "gpt-4o-mini"
DEFAULT_OPENAI_SYSTEM_PROMPT = (
    "与えられた音声テキストを清書してください。意味を変えずに、読みやすく整形してください。"
)
OPENAI_MODEL = os.environ.get("OPENAI_MODEL", "").strip() or DEFAULT_OPENAI_MODEL
OPENAI_SYSTEM_PROMPT = os.environ.get("OPENAI_SYSTEM_PROMPT", "").strip() or DEFAULT_OPENAI_SYSTEM_PROMPT

# ---------------------------------------------------------------------------
# AWS
# ---------------------------------------------------------------------------

AWS_REGION = os.environ.get("AWS_REGION", os.environ.get("AWS_DEFAULT_REGION", "ap-northeast-1"))
SECRET_CACHE_TTL_SECONDS = _int_env("SECRET_CACHE_TTL_SECONDS", 3600)

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logger = logging.getLogger()
logger.setLevel(logging.INFO)
