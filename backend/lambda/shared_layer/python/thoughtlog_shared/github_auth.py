"""github_auth.py — GitHub App JWT → installation access token flow.

GitHub requires the App JWT to be RS256-signed with:
    - iat: issued at (max 60s in the past)
    - exp: expiration (max 10 minutes from iat)
    - iss: GitHub App ID
"""
from __future__ import annotations

import logging
import re
import time
from typing import Any, Optional

import jwt

from thoughtlog_shared.errors import AuthConfigError

logger = logging.getLogger(__name__)

__all__ = ["GitHubAppAuth", "normalize_pem"]

_PEM_HEADER_RE = re.compile(r"-----BEGIN [^-]+-----")
_PEM_FOOTER_RE = re.compile(r"-----END [^-]+-----")


def normalize_pem(pem_raw: Optional[str]) -> Optional[str]:
    """Repair a PEM that went through an env var or a JSON secret.

    Strips surrounding quotes, expands literal ``\\n`` and re-wraps a
    single-line body into 64-character lines.
    """
    if not pem_raw:
        return pem_raw

    pem = pem_raw.strip()
    if len(pem) >= 2 and pem.startswith('"') and pem.endswith('"'):
        pem = pem[1:-1]
    # Escaped and real newlines must normalize to the same key text.
    pem = pem.replace("\\n", "\n").strip()

    if "\n" not in pem:
        header = _PEM_HEADER_RE.search(pem)
        footer = _PEM_FOOTER_RE.search(pem)
        if not header or not footer:
            return pem
        body = pem.replace(header.group(0), "").replace(footer.group(0), "")
        body = re.sub(r"\s+", "", body)
        lines = [body[i : i + 64] for i in range(0, len(body), 64)]
        pem = f"{header.group(0)}\n" + "\n".join(lines) + f"\n{footer.group(0)}\n"
    return pem


class GitHubAppAuth:
    """Produces short-lived installation tokens for a GitHub App.

    The private key comes from ``private_key_pem`` when set, otherwise from
    ``secret_provider.get_secret()``.
    """

    def __init__(
        self,
        app_id: Optional[str],
        installation_id: Optional[str],
        github: Any,
        private_key_pem: Optional[str] = None,
        secret_provider: Any = None,
    ):
        self.app_id = app_id
        self.installation_id = installation_id
        self.github = github
        self.private_key_pem = private_key_pem
        self.secret_provider = secret_provider

    def _private_key(self) -> Optional[str]:
        if self.private_key_pem:
            return normalize_pem(self.private_key_pem)
        if self.secret_provider is not None:
            return normalize_pem(self.secret_provider.get_secret())
        return None

    def generate_app_jwt(self, now: Optional[int] = None) -> str:
        private_key = self._private_key()
        if not self.app_id or not self.installation_id or not private_key:
            raise AuthConfigError(
                "Missing env: GITHUB_APP_ID / GITHUB_INSTALLATION_ID / GITHUB_PRIVATE_KEY_PEM"
            )
        try:
            app_id = int(self.app_id)
        except ValueError as exc:
            raise AuthConfigError(f"GITHUB_APP_ID must be numeric: {self.app_id}") from exc

        issued = int(now if now is not None else time.time())
        payload = {
            "iat": issued - 30,  # clock skew
            "exp": issued + (8 * 60),
            "iss": app_id,
        }
        return jwt.encode(payload, private_key, algorithm="RS256")

    def get_installation_token(self) -> str:
        app_jwt = self.generate_app_jwt()
        data = self.github.create_installation_token(self.installation_id, app_jwt)
        token = (data or {}).get("token")
        if not token:
            raise AuthConfigError("GitHub installation token response did not include a token")
        return token
