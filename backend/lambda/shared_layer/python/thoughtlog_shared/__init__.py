"""thoughtlog_shared — Shared code for the ThoughtLog Lambda functions.

Provides:
    - Entry orchestration (create / read / update daily logs) with idempotency
    - Voice comment refinement orchestration
    - DynamoDB idempotency ledger
    - GitHub App auth and GitHub REST client
    - OpenAI text refiner, SQS queue, Secrets Manager secret provider
    - HTTP response helpers and DynamoDB serialization
"""

__version__ = "1.0.0"
