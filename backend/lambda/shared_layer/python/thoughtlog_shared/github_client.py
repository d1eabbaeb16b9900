"""github_client.py — GitHub REST API client for daily-log issues and comments.

Uses urllib with an installation token per call; the token is supplied by
the caller so one client instance can be shared across invocations.
"""
from __future__ import annotations

import json
import logging
import ssl
import urllib.error
import urllib.request
from typing import Any, Dict, List, Optional
from urllib.parse import quote, urlencode

import certifi

from thoughtlog_shared.config import (
    CANONICAL_LABEL,
    GITHUB_API_BASE,
    GITHUB_API_TIMEOUT_SECONDS,
    GITHUB_API_VERSION,
    GITHUB_USER_AGENT,
)
from thoughtlog_shared.errors import GitHubApiError

logger = logging.getLogger(__name__)

__all__ = ["COMMENTS_PAGE_SIZE", "GitHubClient", "daily_issue_body", "primary_label"]

COMMENTS_PAGE_SIZE = 100
_SEARCH_PAGE_SIZE = 5
_SSL_CONTEXT = ssl.create_default_context(cafile=certifi.where())


def primary_label(labels: List[str]) -> Optional[str]:
    """The label used to scope the daily-issue search."""
    if CANONICAL_LABEL in labels:
        return CANONICAL_LABEL
    return labels[0] if labels else None


def daily_issue_body(date_key: str) -> str:
    return f"# {date_key}\n\n<!-- summary will be generated later -->\n"


class GitHubClient:
    def __init__(
        self,
        api_base: str = GITHUB_API_BASE,
        timeout: float = GITHUB_API_TIMEOUT_SECONDS,
    ):
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _request(
        self,
        path: str,
        *,
        method: str = "GET",
        token: Optional[str] = None,
        body: Optional[Dict[str, Any]] = None,
    ) -> Any:
        url = path if path.startswith("http") else f"{self.api_base}{path}"
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": GITHUB_API_VERSION,
            "User-Agent": GITHUB_USER_AGENT,
            "Content-Type": "application/json",
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
        data = json.dumps(body).encode("utf-8") if body is not None else None

        req = urllib.request.Request(url, method=method, data=data, headers=headers)
        try:
            with urllib.request.urlopen(req, timeout=self.timeout, context=_SSL_CONTEXT) as resp:
                text = resp.read().decode("utf-8", errors="replace")
        except urllib.error.HTTPError as exc:
            body_text = exc.read().decode("utf-8", errors="replace")
            logger.error("GitHub API %s %s failed: %s %s", method, path, exc.code, body_text[:500])
            raise GitHubApiError(
                f"GitHub API {exc.code}: {json.dumps(_decode(body_text))}",
                status=exc.code,
            ) from exc
        except urllib.error.URLError as exc:
            logger.error("GitHub API %s %s unreachable: %s", method, path, exc.reason)
            raise GitHubApiError(f"GitHub API request failed: {exc.reason}") from exc
        return _decode(text)

    # ------------------------------------------------------------------
    # App installation
    # ------------------------------------------------------------------

    def create_installation_token(self, installation_id: str, app_jwt: str) -> Dict[str, Any]:
        """POST /app/installations/{id}/access_tokens (token valid for 1 hour)."""
        return self._request(
            f"/app/installations/{installation_id}/access_tokens",
            method="POST",
            token=app_jwt,
        )

    # ------------------------------------------------------------------
    # Issues
    # ------------------------------------------------------------------

    def find_daily_issue(
        self,
        *,
        owner: str,
        repo: str,
        date_key: str,
        labels: List[str],
        token: str,
    ) -> Optional[Dict[str, Any]]:
        """Open issue whose title is exactly ``date_key``, or None.

        Search is a prefilter only; substring and prefix matches are discarded.
        """
        q_parts = [f"repo:{owner}/{repo}", "is:issue", "state:open", "in:title", f'"{date_key}"']
        label = primary_label(labels)
        if label:
            q_parts.append(f"label:{label}")
        query = urlencode({"q": " ".join(q_parts), "per_page": _SEARCH_PAGE_SIZE}, quote_via=quote)

        result = self._request(f"/search/issues?{query}", token=token) or {}
        for item in result.get("items") or []:
            if str(item.get("title") or "").strip() == date_key:
                return item
        return None

    def create_daily_issue(
        self,
        *,
        owner: str,
        repo: str,
        date_key: str,
        labels: List[str],
        token: str,
    ) -> Dict[str, Any]:
        return self._request(
            f"/repos/{owner}/{repo}/issues",
            method="POST",
            token=token,
            body={"title": date_key, "body": daily_issue_body(date_key), "labels": labels},
        )

    def get_issue(self, *, owner: str, repo: str, issue_number: int, token: str) -> Dict[str, Any]:
        return self._request(f"/repos/{owner}/{repo}/issues/{issue_number}", token=token)

    def update_issue(
        self,
        *,
        owner: str,
        repo: str,
        issue_number: int,
        token: str,
        body: Optional[str] = None,
        title: Optional[str] = None,
    ) -> Dict[str, Any]:
        patch: Dict[str, Any] = {}
        if body is not None:
            patch["body"] = body
        if title is not None:
            patch["title"] = title
        return self._request(
            f"/repos/{owner}/{repo}/issues/{issue_number}",
            method="PATCH",
            token=token,
            body=patch,
        )

    def close_issue(self, *, owner: str, repo: str, issue_number: int, token: str) -> Dict[str, Any]:
        return self._request(
            f"/repos/{owner}/{repo}/issues/{issue_number}",
            method="PATCH",
            token=token,
            body={"state": "closed"},
        )

    def remove_label(self, *, owner: str, repo: str, issue_number: int, label: str, token: str) -> Any:
        return self._request(
            f"/repos/{owner}/{repo}/issues/{issue_number}/labels/{quote(label, safe='')}",
            method="DELETE",
            token=token,
        )

    # ------------------------------------------------------------------
    # Comments
    # ------------------------------------------------------------------

    def add_comment(
        self,
        *,
        owner: str,
        repo: str,
        issue_number: int,
        comment_body: str,
        token: str,
    ) -> Dict[str, Any]:
        return self._request(
            f"/repos/{owner}/{repo}/issues/{issue_number}/comments",
            method="POST",
            token=token,
            body={"body": comment_body},
        )

    def get_issue_comments(
        self,
        *,
        owner: str,
        repo: str,
        issue_number: int,
        token: str,
    ) -> List[Dict[str, Any]]:
        """All comments in creation order, fetched 100 per page."""
        comments: List[Dict[str, Any]] = []
        page = 1
        while True:
            batch = self._request(
                f"/repos/{owner}/{repo}/issues/{issue_number}/comments"
                f"?per_page={COMMENTS_PAGE_SIZE}&page={page}",
                token=token,
            )
            if not batch:
                break
            comments.extend(batch)
            if len(batch) < COMMENTS_PAGE_SIZE:
                break
            page += 1
        return comments

    def get_comment(self, *, owner: str, repo: str, comment_id: int, token: str) -> Dict[str, Any]:
        return self._request(f"/repos/{owner}/{repo}/issues/comments/{comment_id}", token=token)

    def update_comment(
        self,
        *,
        owner: str,
        repo: str,
        comment_id: int,
        body: str,
        token: str,
    ) -> Dict[str, Any]:
        return self._request(
            f"/repos/{owner}/{repo}/issues/comments/{comment_id}",
            method="PATCH",
            token=token,
            body={"body": body},
        )


def _decode(text: str) -> Any:
    if not text:
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return {"raw": text}
