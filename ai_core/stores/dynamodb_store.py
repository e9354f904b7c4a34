"""DynamoDB-backed TTL store.

Table layout: partition key ``pk`` (string) and ``expires_at`` (epoch
seconds, configured as the table's TTL attribute). Plain values live in
``value`` as a JSON string; rate windows written by ``incr`` keep
``count`` and ``window_start`` as native numbers so they can be updated
atomically. DynamoDB deletes expired items lazily, so reads also check
``expires_at``.
"""

import asyncio
import json
import time
from decimal import Decimal
from typing import Any

from ai_core.stores.store import TTLStore

CONDITIONAL_CHECK_FAILED = "ConditionalCheckFailedException"
# incr falls through its three steps at most this many times under contention
MAX_INCR_ROUNDS = 5


def _is_condition_failure(error) -> bool:
    return error.response.get("Error", {}).get("Code") == CONDITIONAL_CHECK_FAILED


class DynamoDBTTLStore(TTLStore):
    """Stores rate-limit windows in a DynamoDB table shared by all workers."""

    def __init__(self, table_name: str, region: str = "us-east-1"):
        self._table_name = table_name
        self._region = region
        self._table = None

    def _get_table(self):
        """Lazy-init boto3 Table resource."""
        if self._table is None:
            import boto3

            dynamodb = boto3.resource("dynamodb", region_name=self._region)
            self._table = dynamodb.Table(self._table_name)
        return self._table

    def _get_item(self, key: str) -> dict | None:
        resp = self._get_table().get_item(Key={"pk": key}, ConsistentRead=True)
        item = resp.get("Item")
        if item is None:
            return None
        # Expired but not yet swept by DynamoDB
        if float(item.get("expires_at", 0)) <= time.time():
            return None
        return item

    async def get(self, key: str) -> Any | None:
        item = await asyncio.to_thread(self._get_item, key)
        if item is None:
            return None
        if "value" in item:
            return json.loads(item["value"])
        return {"count": int(item["count"]), "window_start": float(item["window_start"])}

    def _put_item(self, key: str, value: Any, ttl_seconds: float) -> None:
        self._get_table().put_item(Item={
            "pk": key,
            "value": json.dumps(value),
            # DynamoDB numbers can't be floats through boto3's resource API
            "expires_at": int(time.time() + ttl_seconds + 0.999),
        })

    async def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        if ttl_seconds <= 0:
            await self.delete(key)
            return
        await asyncio.to_thread(self._put_item, key, value, ttl_seconds)

    def _delete_item(self, key: str) -> bool:
        resp = self._get_table().delete_item(Key={"pk": key}, ReturnValues="ALL_OLD")
        return "Attributes" in resp

    async def delete(self, key: str) -> bool:
        return await asyncio.to_thread(self._delete_item, key)

    async def ttl(self, key: str) -> float | None:
        item = await asyncio.to_thread(self._get_item, key)
        if item is None:
            return None
        return max(0.0, float(item["expires_at"]) - time.time())

    def _increment_live(self, table, key: str, limit: int, now: Decimal) -> int | None:
        """ADD 1 to a live window below ``limit``; None if the condition fails."""
        from botocore.exceptions import ClientError

        try:
            resp = table.update_item(
                Key={"pk": key},
                UpdateExpression="ADD #count :one",
                ConditionExpression="attribute_exists(pk) AND expires_at > :now AND #count < :limit",
                ExpressionAttributeNames={"#count": "count"},
                ExpressionAttributeValues={":one": 1, ":now": now, ":limit": limit},
                ReturnValues="UPDATED_NEW",
            )
        except ClientError as e:
            if _is_condition_failure(e):
                return None
            raise
        return int(resp["Attributes"]["count"])

    def _start_window(self, table, key: str, ttl_seconds: float, now: Decimal) -> bool:
        """Create a fresh window unless a live one already exists."""
        from botocore.exceptions import ClientError

        try:
            table.put_item(
                Item={
                    "pk": key,
                    "count": 1,
                    "window_start": now,
                    "expires_at": int(float(now) + ttl_seconds + 0.999),
                },
                ConditionExpression="attribute_not_exists(pk) OR expires_at <= :now",
                ExpressionAttributeValues={":now": now},
            )
        except ClientError as e:
            if _is_condition_failure(e):
                return False
            raise
        return True

    def _incr(self, key: str, ttl_seconds: float, limit: int) -> tuple[bool, int]:
        if limit < 1 or ttl_seconds <= 0:
            return False, 0
        table = self._get_table()
        for _ in range(MAX_INCR_ROUNDS):
            now = Decimal(str(round(time.time(), 3)))

            count = self._increment_live(table, key, limit, now)
            if count is not None:
                return True, count

            if self._start_window(table, key, ttl_seconds, now):
                return True, 1

            # Both conditions failed: either the window is full, or another
            # writer changed it between our two calls
            item = self._get_item(key)
            if item is not None and int(item.get("count", 0)) >= limit:
                return False, int(item["count"])

        item = self._get_item(key)
        return False, int(item.get("count", 0)) if item is not None else 0

    async def incr(self, key: str, ttl_seconds: float, limit: int) -> tuple[bool, int]:
        return await asyncio.to_thread(self._incr, key, ttl_seconds, limit)

    def _delete_prefix(self, prefix: str) -> int:
        from boto3.dynamodb.conditions import Attr

        table = self._get_table()
        deleted = 0
        kwargs = {
            "FilterExpression": Attr("pk").begins_with(prefix),
            "ProjectionExpression": "pk",
        }
        while True:
            resp = table.scan(**kwargs)
            for item in resp.get("Items", []):
                table.delete_item(Key={"pk": item["pk"]})
                deleted += 1
            if "LastEvaluatedKey" not in resp:
                return deleted
            kwargs["ExclusiveStartKey"] = resp["LastEvaluatedKey"]

    async def delete_prefix(self, prefix: str) -> int:
        return await asyncio.to_thread(self._delete_prefix, prefix)
