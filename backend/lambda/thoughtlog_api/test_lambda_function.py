"""Routing and response-shape tests for the ThoughtLog HTTP API handler."""

from __future__ import annotations

import base64
import importlib.util
import json
import os
import sys
import unittest
from unittest.mock import MagicMock, patch

sys.path.insert(0, os.path.dirname(__file__))
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "shared_layer", "python"))

from thoughtlog_shared import config
from thoughtlog_shared.errors import GitHubApiError, ValidationError
from thoughtlog_shared.thoughtlog_service import (
    EntryCreated,
    IdempotentReplay,
    LogFound,
    LogNotFound,
    LogUpdated,
)

_SPEC = importlib.util.spec_from_file_location(
    "thoughtlog_api",
    os.path.join(os.path.dirname(__file__), "lambda_function.py"),
)
thoughtlog_api = importlib.util.module_from_spec(_SPEC)
_SPEC.loader.exec_module(thoughtlog_api)


def _event(*, method: str = "POST", path: str = "/", body=None, base64_body: bool = False) -> dict:
    raw = json.dumps(body) if isinstance(body, dict) else body
    if base64_body and raw is not None:
        raw = base64.b64encode(raw.encode("utf-8")).decode("ascii")
    return {
        "requestContext": {"http": {"method": method, "path": path}},
        "rawPath": path,
        "body": raw,
        "isBase64Encoded": base64_body,
    }


def _body(resp: dict) -> dict:
    return json.loads(resp["body"])


class ThoughtLogApiTests(unittest.TestCase):
    def setUp(self) -> None:
        self.service = MagicMock()
        patchers = [
            patch.object(thoughtlog_api, "_get_service", return_value=self.service),
            patch.object(config, "GITHUB_OWNER", "me"),
            patch.object(config, "GITHUB_REPO", "log"),
        ]
        for p in patchers:
            p.start()
            self.addCleanup(p.stop)

    # -- configuration -----------------------------------------------------

    def test_missing_repo_env(self):
        with patch.object(config, "GITHUB_REPO", ""):
            resp = thoughtlog_api.lambda_handler(_event(body={"request_id": "r"}), None)
        self.assertEqual(resp["statusCode"], 500)
        self.assertEqual(_body(resp), {"ok": False, "error": "missing_repo_env"})
        self.service.create_entry.assert_not_called()

    # -- POST / ------------------------------------------------------------

    def test_create_returns_201(self):
        self.service.create_entry.return_value = EntryCreated(
            date="2024-01-15", issue_number=12, issue_url="https://x/12", comment_id=501
        )
        payload = {"request_id": "req-1", "raw": "hello"}

        resp = thoughtlog_api.lambda_handler(_event(body=payload), None)

        self.assertEqual(resp["statusCode"], 201)
        self.assertEqual(
            _body(resp),
            {"ok": True, "date": "2024-01-15", "issue_number": 12, "issue_url": "https://x/12", "comment_id": 501},
        )
        self.service.create_entry.assert_called_once_with(payload)

    def test_create_accepts_base64_body(self):
        self.service.create_entry.return_value = EntryCreated(
            date="2024-01-15", issue_number=1, issue_url="u", comment_id=2
        )
        resp = thoughtlog_api.lambda_handler(_event(body={"request_id": "r", "raw": "日本語"}, base64_body=True), None)
        self.assertEqual(resp["statusCode"], 201)
        self.assertEqual(self.service.create_entry.call_args.args[0]["raw"], "日本語")

    def test_idempotent_outcome_passes_status_through(self):
        for status, body in (
            (200, {"ok": True, "idempotent": True, "issue_number": 12, "issue_url": "u", "comment_id": 5}),
            (202, {"ok": True, "idempotent": True, "status": "processing"}),
            (409, {"ok": False, "error": "request_id_reused_with_different_payload"}),
        ):
            self.service.create_entry.return_value = IdempotentReplay(status_code=status, body=body)
            resp = thoughtlog_api.lambda_handler(_event(body={"request_id": "r"}), None)
            self.assertEqual(resp["statusCode"], status)
            self.assertEqual(_body(resp), body)

    def test_invalid_json(self):
        resp = thoughtlog_api.lambda_handler(_event(body="{not json"), None)
        self.assertEqual(resp["statusCode"], 400)
        self.assertEqual(_body(resp)["error"], "invalid_json")

    def test_missing_request_id(self):
        for body in ({"raw": "x"}, {"request_id": "  "}, None):
            resp = thoughtlog_api.lambda_handler(_event(body=body), None)
            self.assertEqual(resp["statusCode"], 400)
            self.assertEqual(_body(resp)["error"], "missing_request_id")
        self.service.create_entry.assert_not_called()

    def test_validation_error_is_400(self):
        self.service.create_entry.side_effect = ValidationError("captured_at is not a valid ISO-8601 timestamp: x")
        resp = thoughtlog_api.lambda_handler(_event(body={"request_id": "r", "captured_at": "x"}), None)
        self.assertEqual(resp["statusCode"], 400)

    def test_unhandled_error_is_500_with_message(self):
        self.service.create_entry.side_effect = GitHubApiError("GitHub API 502: null", status=502)
        resp = thoughtlog_api.lambda_handler(_event(body={"request_id": "r"}), None)
        self.assertEqual(resp["statusCode"], 500)
        self.assertEqual(_body(resp), {"ok": False, "error": "GitHub API 502: null"})

    def test_other_methods_rejected(self):
        resp = thoughtlog_api.lambda_handler(_event(method="DELETE", path="/"), None)
        self.assertEqual(resp["statusCode"], 405)

    # -- GET /log/{date} ---------------------------------------------------

    def test_get_log_text(self):
        self.service.get_log.return_value = LogFound(body="## 09:00\nfirst\n\n## 10:00\nsecond\n")

        resp = thoughtlog_api.lambda_handler(_event(method="GET", path="/log/2024-01-15"), None)

        self.assertEqual(resp["statusCode"], 200)
        self.assertTrue(resp["headers"]["Content-Type"].startswith("text/plain"))
        self.assertEqual(resp["body"], "## 09:00\nfirst\n\n## 10:00\nsecond\n")
        self.service.get_log.assert_called_once_with("2024-01-15")

    def test_get_log_not_found(self):
        self.service.get_log.return_value = LogNotFound(date="2024-01-15")
        resp = thoughtlog_api.lambda_handler(_event(method="GET", path="/log/2024-01-15"), None)
        self.assertEqual(resp["statusCode"], 404)
        self.assertEqual(_body(resp), {"ok": False, "error": "not_found", "date": "2024-01-15"})

    def test_get_log_invalid_date(self):
        resp = thoughtlog_api.lambda_handler(_event(method="GET", path="/log/2024-13-45"), None)
        self.assertEqual(resp["statusCode"], 400)
        self.assertEqual(_body(resp)["error"], "invalid_date")
        self.service.get_log.assert_not_called()

    def test_get_without_date_is_405(self):
        resp = thoughtlog_api.lambda_handler(_event(method="GET", path="/"), None)
        self.assertEqual(resp["statusCode"], 405)

    # -- PUT /log/{date} ---------------------------------------------------

    def test_put_log_updates(self):
        self.service.update_log.return_value = LogUpdated(date="2024-01-15", issue_number=12, issue_url="https://x/12")

        resp = thoughtlog_api.lambda_handler(
            _event(method="PUT", path="/log/2024-01-15", body={"raw": "  summary  "}), None
        )

        self.assertEqual(resp["statusCode"], 200)
        self.assertEqual(
            _body(resp), {"ok": True, "date": "2024-01-15", "issue_number": 12, "issue_url": "https://x/12"}
        )
        self.service.update_log.assert_called_once_with("2024-01-15", "summary")

    def test_put_log_missing_body(self):
        for body in ({}, {"raw": "   "}, None):
            resp = thoughtlog_api.lambda_handler(_event(method="PUT", path="/log/2024-01-15", body=body), None)
            self.assertEqual(resp["statusCode"], 400)
            self.assertEqual(_body(resp)["error"], "missing_body")
        self.service.update_log.assert_not_called()

    def test_put_log_invalid_json(self):
        resp = thoughtlog_api.lambda_handler(_event(method="PUT", path="/log/2024-01-15", body="[1,"), None)
        self.assertEqual(resp["statusCode"], 400)
        self.assertEqual(_body(resp)["error"], "invalid_json")

    def test_put_log_not_found(self):
        self.service.update_log.return_value = LogNotFound(date="2024-01-15")
        resp = thoughtlog_api.lambda_handler(
            _event(method="PUT", path="/log/2024-01-15", body={"raw": "summary"}), None
        )
        self.assertEqual(resp["statusCode"], 404)

    def test_rest_v1_event_shape(self):
        self.service.get_log.return_value = LogFound(body="x")
        event = {"httpMethod": "GET", "path": "/prod/log/2024-01-15", "body": None}
        resp = thoughtlog_api.lambda_handler(event, None)
        self.assertEqual(resp["statusCode"], 200)
        self.service.get_log.assert_called_once_with("2024-01-15")


if __name__ == "__main__":
    unittest.main()
