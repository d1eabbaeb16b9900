"""secret_provider.py — Secrets Manager lookups with a single-value TTL cache.

The cached value is refreshed lazily on the first access after it expires,
so warm Lambda invocations avoid a Secrets Manager round trip.
"""
from __future__ import annotations

import json
import logging
import time
from typing import Any, Callable, Optional

from thoughtlog_shared.aws_clients import _get_secretsmanager
from thoughtlog_shared.config import SECRET_CACHE_TTL_SECONDS
from thoughtlog_shared.errors import SecretNotFoundError

logger = logging.getLogger(__name__)

__all__ = ["SecretsManagerSecretProvider", "extract_api_key"]


class SecretsManagerSecretProvider:
    """Fetches one secret's ``SecretString`` and caches it for ``ttl_seconds``."""

    def __init__(
        self,
        secret_id: str,
        client: Any = None,
        ttl_seconds: float = SECRET_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.secret_id = secret_id
        self._client = client
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._cached: Optional[str] = None
        self._expires_at: float = 0.0

    @property
    def client(self):
        if self._client is None:
            self._client = _get_secretsmanager()
        return self._client

    def get_secret(self) -> str:
        now = self._clock()
        if self._cached is not None and now < self._expires_at:
            return self._cached

        resp = self.client.get_secret_value(SecretId=self.secret_id)
        value = resp.get("SecretString")
        if not value:
            raise SecretNotFoundError(f"Secret {self.secret_id} has no SecretString value")

        self._cached = value
        self._expires_at = now + self.ttl_seconds
        logger.info("Fetched secret %s (cached for %ss)", self.secret_id, self.ttl_seconds)
        return value

    def invalidate(self) -> None:
        self._cached = None
        self._expires_at = 0.0


def extract_api_key(secret_string: str) -> Optional[str]:
    """Return an API key from a raw secret string or a JSON ``{"api_key": ...}`` secret."""
    raw = str(secret_string or "").strip()
    if not raw:
        return None
    if raw.startswith("{") and raw.endswith("}"):
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError:
            return None
        if not isinstance(payload, dict):
            return None
        for field in ("api_key", "openai_api_key", "key", "token"):
            value = payload.get(field)
            if isinstance(value, str) and value.strip():
                return value.strip()
        return None
    return raw
