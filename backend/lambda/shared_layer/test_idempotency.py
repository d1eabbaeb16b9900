"""Tests for the DynamoDB idempotency ledger (claim / mark_done / mark_failed)."""

from __future__ import annotations

import os
import sys
import unittest
from unittest.mock import MagicMock

from botocore.exceptions import ClientError

sys.path.insert(0, os.path.dirname(__file__))
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "python"))

from ddb_fakes import FakeDynamoDB, conditional_check_failed
from thoughtlog_shared.idempotency import DynamoDBIdempotencyLedger

TABLE = "thoughtlog-idempotency"


class ClaimTests(unittest.TestCase):
    def setUp(self) -> None:
        self.ddb = FakeDynamoDB()
        self.ledger = DynamoDBIdempotencyLedger(TABLE, ttl_days=14, ddb=self.ddb)

    def test_first_claim_wins_and_writes_processing_record(self):
        result = self.ledger.claim("req-1", "hash-a")

        self.assertTrue(result.enabled)
        self.assertTrue(result.claimed)
        record = self.ddb.items["req-1"]
        self.assertEqual(record["status"], "processing")
        self.assertEqual(record["payload_hash"], "hash-a")
        self.assertEqual(record["ttl"] - record["created_at"], 14 * 24 * 60 * 60)

    def test_ttl_follows_retention(self):
        ledger = DynamoDBIdempotencyLedger(TABLE, ttl_days=1, ddb=self.ddb)
        ledger.claim("req-ttl", "h")
        record = self.ddb.items["req-ttl"]
        self.assertEqual(record["ttl"] - record["created_at"], 86400)

    def test_second_claim_while_processing_returns_202(self):
        self.ledger.claim("req-1", "hash-a")
        result = self.ledger.claim("req-1", "hash-a")

        self.assertFalse(result.claimed)
        self.assertEqual(result.status_code, 202)
        self.assertEqual(result.body, {"ok": True, "idempotent": True, "status": "processing"})

    def test_claim_with_different_hash_is_rejected(self):
        self.ledger.claim("req-1", "hash-a")
        result = self.ledger.claim("req-1", "hash-b")

        self.assertFalse(result.claimed)
        self.assertEqual(result.status_code, 409)
        self.assertEqual(result.body, {"ok": False, "error": "request_id_reused_with_different_payload"})

    def test_claim_after_done_replays_result(self):
        self.ledger.claim("req-1", "hash-a")
        self.ledger.mark_done("req-1", issue_number=7, issue_url="https://github.com/o/r/issues/7", comment_id=99)

        result = self.ledger.claim("req-1", "hash-a")

        self.assertFalse(result.claimed)
        self.assertEqual(result.status_code, 200)
        self.assertEqual(result.body, {
            "ok": True,
            "idempotent": True,
            "issue_number": 7,
            "issue_url": "https://github.com/o/r/issues/7",
            "comment_id": 99,
        })

    def test_claim_after_failed_returns_202_failed(self):
        # A failed request_id stays failed until its ttl expires; callers mint a new id.
        self.ledger.claim("req-1", "hash-a")
        self.ledger.mark_failed("req-1", "boom")

        result = self.ledger.claim("req-1", "hash-a")

        self.assertEqual(result.status_code, 202)
        self.assertEqual(result.body["status"], "failed")
        self.assertEqual(self.ddb.items["req-1"]["status"], "failed")

    def test_record_vanishing_between_put_and_get_signals_retry(self):
        ddb = MagicMock()
        ddb.put_item.side_effect = conditional_check_failed()
        ddb.get_item.return_value = {}
        ledger = DynamoDBIdempotencyLedger(TABLE, ddb=ddb)

        result = ledger.claim("req-1", "hash-a")

        self.assertFalse(result.claimed)
        self.assertEqual(result.status_code, 409)
        self.assertEqual(result.body, {"ok": False, "error": "idempotency_race_retry"})
        self.assertTrue(ddb.get_item.call_args.kwargs["ConsistentRead"])

    def test_other_store_errors_propagate(self):
        ddb = MagicMock()
        ddb.put_item.side_effect = ClientError(
            {"Error": {"Code": "ProvisionedThroughputExceededException", "Message": "slow down"}},
            "PutItem",
        )
        ledger = DynamoDBIdempotencyLedger(TABLE, ddb=ddb)

        with self.assertRaises(ClientError):
            ledger.claim("req-1", "hash-a")
        ddb.get_item.assert_not_called()

    def test_put_is_conditional_on_absence(self):
        ddb = MagicMock()
        DynamoDBIdempotencyLedger(TABLE, ddb=ddb).claim("req-1", "hash-a")
        kwargs = ddb.put_item.call_args.kwargs
        self.assertEqual(kwargs["TableName"], TABLE)
        self.assertEqual(kwargs["ConditionExpression"], "attribute_not_exists(request_id)")
        self.assertEqual(kwargs["Item"]["status"], {"S": "processing"})


class DisabledLedgerTests(unittest.TestCase):
    def test_disabled_claim_always_proceeds(self):
        ddb = MagicMock()
        ledger = DynamoDBIdempotencyLedger(None, ddb=ddb)

        for _ in range(3):
            result = ledger.claim("req-1", "hash-a")
            self.assertFalse(result.enabled)
            self.assertTrue(result.claimed)
        ddb.put_item.assert_not_called()

    def test_disabled_marks_are_noops(self):
        ddb = MagicMock()
        ledger = DynamoDBIdempotencyLedger("", ddb=ddb)

        ledger.mark_done("req-1", issue_number=1, issue_url="u", comment_id=2)
        ledger.mark_failed("req-1", "boom")

        ddb.update_item.assert_not_called()


class MarkTests(unittest.TestCase):
    def setUp(self) -> None:
        self.ddb = FakeDynamoDB()
        self.ledger = DynamoDBIdempotencyLedger(TABLE, ddb=self.ddb)
        self.ledger.claim("req-1", "hash-a")

    def test_mark_done_sets_result_fields(self):
        self.ledger.mark_done("req-1", issue_number=3, issue_url="https://x/3", comment_id=44)
        record = self.ddb.items["req-1"]
        self.assertEqual(record["status"], "done")
        self.assertEqual(record["issue_number"], 3)
        self.assertEqual(record["issue_url"], "https://x/3")
        self.assertEqual(record["comment_id"], 44)
        self.assertEqual(record["payload_hash"], "hash-a")

    def test_mark_done_is_idempotent(self):
        self.ledger.mark_done("req-1", issue_number=3, issue_url="https://x/3", comment_id=44)
        self.ledger.mark_done("req-1", issue_number=3, issue_url="https://x/3", comment_id=44)
        self.assertEqual(self.ddb.items["req-1"]["status"], "done")

    def test_mark_failed_truncates_error(self):
        self.ledger.mark_failed("req-1", "x" * 2000)
        record = self.ddb.items["req-1"]
        self.assertEqual(record["status"], "failed")
        self.assertEqual(len(record["error"]), 900)

    def test_mark_failed_swallows_store_errors(self):
        self.ddb.update_error = RuntimeError("dynamodb unavailable")
        self.ledger.mark_failed("req-1", "original failure")  # must not raise

    def test_mark_failed_never_overwrites_done(self):
        self.ledger.mark_done("req-1", issue_number=3, issue_url="https://x/3", comment_id=44)
        self.ledger.mark_failed("req-1", "late failure")
        record = self.ddb.items["req-1"]
        self.assertEqual(record["status"], "done")
        self.assertNotIn("error", record)

    def test_mark_done_errors_propagate(self):
        self.ddb.update_error = RuntimeError("dynamodb unavailable")
        with self.assertRaises(RuntimeError):
            self.ledger.mark_done("req-1", issue_number=3, issue_url="u", comment_id=4)


if __name__ == "__main__":
    unittest.main()
