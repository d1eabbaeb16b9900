"""errors.py — Exception types shared by the ThoughtLog Lambdas."""
from __future__ import annotations

__all__ = [
    "AuthConfigError",
    "GitHubApiError",
    "SecretNotFoundError",
    "TextRefinerError",
    "ValidationError",
]


class ValidationError(ValueError):
    """Raised when a request is rejected before any side effect."""


class AuthConfigError(ValueError):
    """Raised when the GitHub App identity or private key is missing."""


class SecretNotFoundError(RuntimeError):
    """Raised when a Secrets Manager secret has no SecretString."""


class GitHubApiError(RuntimeError):
    """Raised on a non-2xx GitHub response or a transport failure."""

    def __init__(self, message: str, status: int = 0):
        super().__init__(message)
        self.status = status


class TextRefinerError(RuntimeError):
    """Raised when the text-completion service fails or returns nothing."""
