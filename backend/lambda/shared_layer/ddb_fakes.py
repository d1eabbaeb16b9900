"""In-memory stand-in for the DynamoDB low-level client used by the ledger tests.

Understands only what DynamoDBIdempotencyLedger sends: put_item guarded by
``attribute_not_exists(request_id)``, consistent get_item, and
``SET a = :x, ...`` updates whose condition (when present) requires an
existing, not-yet-done record.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from boto3.dynamodb.types import TypeDeserializer, TypeSerializer
from botocore.exceptions import ClientError

_SER = TypeSerializer()
_DESER = TypeDeserializer()


def conditional_check_failed(operation: str = "PutItem") -> ClientError:
    return ClientError(
        {"Error": {"Code": "ConditionalCheckFailedException", "Message": "The conditional request failed"}},
        operation,
    )


class FakeDynamoDB:
    def __init__(self) -> None:
        self.items: Dict[str, Dict[str, Any]] = {}
        self.calls: List[str] = []
        self.update_error: Optional[Exception] = None

    def _key(self, key: Dict[str, Any]) -> str:
        return _DESER.deserialize(key["request_id"])

    def put_item(self, *, TableName: str, Item: Dict[str, Any], ConditionExpression: str = "") -> Dict[str, Any]:
        self.calls.append("put_item")
        item = {k: _DESER.deserialize(v) for k, v in Item.items()}
        if ConditionExpression == "attribute_not_exists(request_id)" and item["request_id"] in self.items:
            raise conditional_check_failed("PutItem")
        self.items[item["request_id"]] = item
        return {}

    def get_item(self, *, TableName: str, Key: Dict[str, Any], ConsistentRead: bool = False) -> Dict[str, Any]:
        self.calls.append("get_item")
        item = self.items.get(self._key(Key))
        if item is None:
            return {}
        return {"Item": {k: _SER.serialize(v) for k, v in item.items()}}

    def update_item(
        self,
        *,
        TableName: str,
        Key: Dict[str, Any],
        UpdateExpression: str,
        ExpressionAttributeNames: Optional[Dict[str, str]] = None,
        ExpressionAttributeValues: Optional[Dict[str, Any]] = None,
        ConditionExpression: str = "",
    ) -> Dict[str, Any]:
        self.calls.append("update_item")
        if self.update_error is not None:
            raise self.update_error

        key = self._key(Key)
        names = ExpressionAttributeNames or {}
        values = {k: _DESER.deserialize(v) for k, v in (ExpressionAttributeValues or {}).items()}
        existing = self.items.get(key)
        if ConditionExpression and (existing is None or existing.get("status") == "done"):
            raise conditional_check_failed("UpdateItem")

        item = self.items.setdefault(key, {"request_id": key})
        assert UpdateExpression.startswith("SET ")
        for assignment in UpdateExpression[len("SET "):].split(","):
            attr, placeholder = (part.strip() for part in assignment.split("="))
            item[names.get(attr, attr)] = values[placeholder]
        return {}
