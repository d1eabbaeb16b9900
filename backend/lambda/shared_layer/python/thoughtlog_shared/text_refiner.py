"""text_refiner.py — OpenAI Chat Completions client used to clean up dictated text."""
from __future__ import annotations

import json
import logging
import ssl
import urllib.error
import urllib.request
from typing import Any, Dict, List, Optional

import certifi

from thoughtlog_shared.config import (
    DEFAULT_OPENAI_MODEL,
    DEFAULT_OPENAI_SYSTEM_PROMPT,
    OPENAI_API_BASE_URL,
    OPENAI_API_TIMEOUT_SECONDS,
)
from thoughtlog_shared.errors import TextRefinerError
from thoughtlog_shared.secret_provider import extract_api_key

logger = logging.getLogger(__name__)

__all__ = ["OpenAITextRefiner", "StaticKeyProvider"]

_SSL_CONTEXT = ssl.create_default_context(cafile=certifi.where())


class OpenAITextRefiner:
    """Refines text with the Chat Completions API.

    ``api_key_provider`` is anything with ``get_secret()`` returning either
    the raw key or a JSON secret carrying ``api_key``.
    """

    def __init__(
        self,
        api_key_provider: Any,
        model: str = DEFAULT_OPENAI_MODEL,
        system_prompt: str = DEFAULT_OPENAI_SYSTEM_PROMPT,
        base_url: str = OPENAI_API_BASE_URL,
        timeout: float = OPENAI_API_TIMEOUT_SECONDS,
    ):
        self.api_key_provider = api_key_provider
        self.model = model
        self.system_prompt = system_prompt
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _api_key(self) -> str:
        api_key = extract_api_key(self.api_key_provider.get_secret())
        if not api_key:
            raise TextRefinerError("OpenAI API key secret is empty")
        return api_key

    def _chat(self, messages: List[Dict[str, str]], **extra: Any) -> str:
        request_body: Dict[str, Any] = {"model": self.model, "messages": messages}
        request_body.update(extra)
        req = urllib.request.Request(
            url=f"{self.base_url}/v1/chat/completions",
            method="POST",
            data=json.dumps(request_body).encode("utf-8"),
            headers={
                "Authorization": f"Bearer {self._api_key()}",
                "Content-Type": "application/json",
            },
        )
        try:
            with urllib.request.urlopen(req, timeout=self.timeout, context=_SSL_CONTEXT) as resp:
                raw_body = resp.read().decode("utf-8", errors="replace")
        except urllib.error.HTTPError as exc:
            body = exc.read().decode("utf-8", errors="replace")
            raise TextRefinerError(f"OpenAI API error: {exc.code} {body[:400]}") from exc
        except urllib.error.URLError as exc:
            raise TextRefinerError(f"OpenAI API request failed: {exc.reason}") from exc

        try:
            payload = json.loads(raw_body)
        except json.JSONDecodeError as exc:
            raise TextRefinerError("OpenAI API payload was not valid JSON") from exc

        choices = payload.get("choices") if isinstance(payload, dict) else None
        if not choices:
            raise TextRefinerError("OpenAI API returned no choices")
        content = ((choices[0] or {}).get("message") or {}).get("content")
        if not content:
            raise TextRefinerError("OpenAI API returned empty content")
        return content

    def refine(self, text: str) -> str:
        return self._chat(
            [
                {"role": "system", "content": self.system_prompt},
                {"role": "user", "content": text},
            ]
        )

    def complete_json(self, system_prompt: str, text: str) -> Dict[str, Any]:
        """Ask for a JSON object response and parse it."""
        content = self._chat(
            [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": text},
            ],
            response_format={"type": "json_object"},
        )
        try:
            parsed = json.loads(content)
        except json.JSONDecodeError as exc:
            raise TextRefinerError(f"Failed to parse OpenAI response as JSON: {content}") from exc
        if not isinstance(parsed, dict):
            raise TextRefinerError(f"OpenAI response is not a JSON object: {content}")
        return parsed


class StaticKeyProvider:
    """Wraps a literal API key in the ``get_secret()`` interface."""

    def __init__(self, value: Optional[str]):
        self.value = value or ""

    def get_secret(self) -> str:
        return self.value
