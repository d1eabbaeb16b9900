#!/usr/bin/env python3
"""Polish a finished daily ThoughtLog issue into a titled summary.

Triggered when an issue is labeled ``ready-to-polish``: all comments are
joined and sent to the text-completion service, which must answer with a
JSON object ``{"title": ..., "body": ...}``. The issue is updated, closed,
and the label is removed (label removal is best effort).

An issue without any non-empty comment is closed without polishing.

Environment:
    GITHUB_TOKEN     token with issues:write on the repository (required)
    OPENAI_API_KEY   OpenAI key (required)
    OPENAI_PROMPT    system prompt (or --prompt)
    OPENAI_MODEL     model (or --model), default gpt-4o
"""

from __future__ import annotations

import argparse
import logging
import os
from typing import Any, Dict, List, Optional

from thoughtlog_shared.github_client import GitHubClient
from thoughtlog_shared.text_refiner import OpenAITextRefiner, StaticKeyProvider

logger = logging.getLogger("polish_issue")

POLISH_LABEL = "ready-to-polish"
DEFAULT_MODEL = "gpt-4o"
GITHUB_TIMEOUT_SECONDS = 30
OPENAI_TIMEOUT_SECONDS = 60


def combine_comments(comments: List[Dict[str, Any]]) -> str:
    bodies = [str(c.get("body") or "").strip() for c in comments]
    return "\n\n".join(b for b in bodies if b)


def _remove_label_best_effort(github: GitHubClient, owner: str, repo: str, issue: int, token: str) -> None:
    try:
        github.remove_label(owner=owner, repo=repo, issue_number=issue, label=POLISH_LABEL, token=token)
    except Exception as exc:
        logger.error('Failed to remove label "%s" from issue #%s: %s', POLISH_LABEL, issue, exc)


def polish_issue(
    github: GitHubClient,
    refiner: OpenAITextRefiner,
    *,
    owner: str,
    repo: str,
    issue_number: int,
    prompt: str,
    token: str,
) -> Optional[Dict[str, Any]]:
    """Returns the {title, body} applied, or None when the issue had no content."""
    comments = github.get_issue_comments(owner=owner, repo=repo, issue_number=issue_number, token=token)
    combined = combine_comments(comments)

    if not combined:
        logger.info("Issue #%s has no non-empty comments; skipping OpenAI call.", issue_number)
        github.close_issue(owner=owner, repo=repo, issue_number=issue_number, token=token)
        _remove_label_best_effort(github, owner, repo, issue_number, token)
        logger.info("Closed issue #%s without polishing (no comments).", issue_number)
        return None

    result = refiner.complete_json(prompt, combined)
    title = str(result.get("title") or "").strip()
    body = str(result.get("body") or "").strip()
    if not title or not body:
        raise ValueError(f'OpenAI response is missing "title" or "body": {result}')

    github.update_issue(owner=owner, repo=repo, issue_number=issue_number, title=title, body=body, token=token)
    github.close_issue(owner=owner, repo=repo, issue_number=issue_number, token=token)
    _remove_label_best_effort(github, owner, repo, issue_number, token)

    logger.info("Successfully polished and closed issue #%s", issue_number)
    return {"title": title, "body": body}


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Polish a daily ThoughtLog issue with OpenAI")
    parser.add_argument("--owner", default=os.environ.get("REPO_OWNER", ""))
    parser.add_argument("--repo", default=os.environ.get("REPO_NAME", ""))
    parser.add_argument("--issue", type=int, default=int(os.environ.get("ISSUE_NUMBER") or 0))
    parser.add_argument("--prompt", default=os.environ.get("OPENAI_PROMPT", ""))
    parser.add_argument("--model", default=(os.environ.get("OPENAI_MODEL") or "").strip() or DEFAULT_MODEL)
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    args = _parse_args(argv)

    token = os.environ.get("GITHUB_TOKEN", "")
    api_key = os.environ.get("OPENAI_API_KEY", "")
    required = {
        "GITHUB_TOKEN": token,
        "OPENAI_API_KEY": api_key,
        "OPENAI_PROMPT": args.prompt,
        "ISSUE_NUMBER": args.issue,
        "REPO_OWNER": args.owner,
        "REPO_NAME": args.repo,
    }
    missing = [name for name, value in required.items() if not value]
    if missing:
        logger.error("Missing environment variable(s): %s", ", ".join(missing))
        return 1

    github = GitHubClient(timeout=GITHUB_TIMEOUT_SECONDS)
    refiner = OpenAITextRefiner(StaticKeyProvider(api_key), model=args.model, timeout=OPENAI_TIMEOUT_SECONDS)
    try:
        polish_issue(
            github,
            refiner,
            owner=args.owner,
            repo=args.repo,
            issue_number=args.issue,
            prompt=args.prompt,
            token=token,
        )
    except Exception as exc:
        logger.error("Polishing issue #%s failed: %s", args.issue, exc, exc_info=True)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
