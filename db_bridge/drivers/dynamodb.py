"""Drivers — Amazon DynamoDB (boto3, PartiQL).

Queries are PartiQL statements run through ``ExecuteStatement`` with
positional ``?`` parameters.  Python values are marshalled into DynamoDB
attribute values on the way in and items are unmarshalled on the way out.
boto3 is synchronous, so every client call runs in a worker thread.

An ``endpoint`` parameter points the client at DynamoDB Local or LocalStack;
with an endpoint set, the region format check is skipped.
"""

from __future__ import annotations

import asyncio
import re
from decimal import Decimal
from typing import Any

import boto3
from boto3.dynamodb.types import TypeDeserializer, TypeSerializer
from botocore.config import Config

from db_bridge.drivers.base import BaseDriver, QueryResult
from db_bridge.exceptions import ValidationError

_REGION_PATTERN = re.compile(r"^[a-z]{2}-[a-z]+-\d$")

_serializer = TypeSerializer()
_deserializer = TypeDeserializer()


def _to_dynamo(value: Any) -> Any:
    """Replace floats (rejected by TypeSerializer) with Decimals, recursively."""
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, dict):
        return {k: _to_dynamo(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_dynamo(v) for v in value]
    return value


def _from_dynamo(value: Any) -> Any:
    """Turn Decimals back into int/float and sets into sorted lists."""
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, dict):
        return {k: _from_dynamo(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_from_dynamo(v) for v in value]
    if isinstance(value, (set, frozenset)):
        return sorted((_from_dynamo(v) for v in value), key=str)
    return value


def marshall(value: Any) -> dict[str, Any]:
    return _serializer.serialize(_to_dynamo(value))


def unmarshall_item(item: dict[str, Any]) -> dict[str, Any]:
    return {key: _from_dynamo(_deserializer.deserialize(attr)) for key, attr in item.items()}


def _key_schema(entries: list[dict[str, Any]]) -> list[dict[str, str]]:
    return [{"name": k["AttributeName"], "key_type": k["KeyType"]} for k in entries]


class DynamoDBDriver(BaseDriver):
    BACKEND_TYPE = "dynamodb"
    DISPLAY_NAME = "DynamoDB"
    REQUIRED_FIELDS = ("region", "access_key_id", "secret_access_key")
    SECRET_FIELDS = ("secret_access_key", "session_token", "password")

    def _validate_extra(self) -> None:
        region = str(self.parameters["region"])
        if not self.parameters.get("endpoint") and not _REGION_PATTERN.match(region):
            raise ValidationError(
                f"Invalid AWS region format: {region}",
                backend_type=self.BACKEND_TYPE,
            )

    def _create_client(self) -> Any:
        p = self.parameters
        timeout = float(self._setting("connection_timeout"))
        config = Config(
            connect_timeout=timeout,
            read_timeout=float(self._setting("query_timeout") or 60),
            retries={"max_attempts": 3, "mode": "standard"},
            max_pool_connections=int(self._setting("max_connections")),
        )
        kwargs: dict[str, Any] = {
            "region_name": p["region"],
            "aws_access_key_id": p["access_key_id"],
            "aws_secret_access_key": p["secret_access_key"],
            "config": config,
        }
        if p.get("session_token"):
            kwargs["aws_session_token"] = p["session_token"]
        if p.get("endpoint"):
            kwargs["endpoint_url"] = p["endpoint"]
        return boto3.client("dynamodb", **kwargs)

    async def _open(self) -> Any:
        return await asyncio.to_thread(self._create_client)

    async def _ping(self, client: Any) -> None:
        await asyncio.to_thread(client.list_tables, Limit=1)

    async def _close(self, client: Any) -> None:
        await asyncio.to_thread(client.close)

    async def _execute(
        self, client: Any, statement: str, params: list[Any]
    ) -> QueryResult:
        kwargs: dict[str, Any] = {"Statement": statement}
        if params:
            kwargs["Parameters"] = [marshall(p) for p in params]

        response = await asyncio.to_thread(client.execute_statement, **kwargs)

        rows = [unmarshall_item(item) for item in response.get("Items") or []]
        extras: dict[str, Any] = {}
        if response.get("NextToken"):
            extras["next_token"] = response["NextToken"]
        return QueryResult(rows=rows, extras=extras)

    async def _introspect(self, client: Any) -> dict[str, Any]:
        return await asyncio.to_thread(self._introspect_sync, client)

    @staticmethod
    def _introspect_sync(client: Any) -> dict[str, Any]:
        table_names: list[str] = []
        for page in client.get_paginator("list_tables").paginate():
            table_names.extend(page.get("TableNames", []))

        tables = []
        for name in table_names:
            table = client.describe_table(TableName=name)["Table"]
            created = table.get("CreationDateTime")
            tables.append({
                "name": name,
                "status": table.get("TableStatus"),
                "item_count": table.get("ItemCount", 0),
                "size_bytes": table.get("TableSizeBytes", 0),
                "key_schema": _key_schema(table.get("KeySchema", [])),
                "attributes": [
                    {"name": a["AttributeName"], "type": a["AttributeType"]}
                    for a in table.get("AttributeDefinitions", [])
                ],
                "global_secondary_indexes": [
                    {
                        "name": gsi["IndexName"],
                        "key_schema": _key_schema(gsi.get("KeySchema", [])),
                        "projection": gsi.get("Projection", {}).get("ProjectionType"),
                        "status": gsi.get("IndexStatus"),
                    }
                    for gsi in table.get("GlobalSecondaryIndexes", [])
                ],
                "local_secondary_indexes": [
                    {
                        "name": lsi["IndexName"],
                        "key_schema": _key_schema(lsi.get("KeySchema", [])),
                        "projection": lsi.get("Projection", {}).get("ProjectionType"),
                    }
                    for lsi in table.get("LocalSecondaryIndexes", [])
                ],
                "created_at": created.isoformat() if created is not None else None,
            })

        return {"tables": tables}

    def describe(self) -> dict[str, Any]:
        return {
            "host": self.parameters.get("endpoint") or self.parameters.get("region"),
            "region": self.parameters.get("region"),
            "endpoint": self.parameters.get("endpoint"),
            "database": None,
        }

    def get_connection_string(self) -> str:
        region = self.parameters.get("region")
        endpoint = self.parameters.get("endpoint")
        if endpoint:
            return f"dynamodb://{region}@{endpoint}"
        return f"dynamodb://{region}"
