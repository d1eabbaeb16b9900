"""aws_clients.py — Per-process AWS clients for the ledger, the refinement queue and secrets.

Each client is built on first use and then reused by every warm invocation
of the execution environment.
"""
from __future__ import annotations

from typing import Optional

import boto3
from botocore.config import Config

from thoughtlog_shared.config import AWS_REGION

__all__ = [
    "_get_ddb",
    "_get_secretsmanager",
    "_get_sqs",
]

# Conditional puts on the ledger sit on the request path; give them more retries.
_LEDGER_MAX_ATTEMPTS = 5
_DEFAULT_MAX_ATTEMPTS = 3

_ddb = None
_sqs = None
_secretsmanager = None


def _build(service: str, region: Optional[str], max_attempts: int):
    return boto3.client(
        service,
        region_name=region or AWS_REGION,
        config=Config(retries={"max_attempts": max_attempts, "mode": "standard"}),
    )


def _get_ddb(region: Optional[str] = None):
    """DynamoDB client backing the idempotency ledger."""
    global _ddb
    if _ddb is None:
        _ddb = _build("dynamodb", region, _LEDGER_MAX_ATTEMPTS)
    return _ddb


def _get_sqs(region: Optional[str] = None):
    global _sqs
    if _sqs is None:
        _sqs = _build("sqs", region, _DEFAULT_MAX_ATTEMPTS)
    return _sqs


def _get_secretsmanager(region: Optional[str] = None):
    global _secretsmanager
    if _secretsmanager is None:
        _secretsmanager = _build("secretsmanager", region, _DEFAULT_MAX_ATTEMPTS)
    return _secretsmanager
