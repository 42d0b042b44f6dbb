"""Unit tests — DynamoDBDriver with a mocked boto3 client."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any
from unittest.mock import MagicMock, patch

import pytest

from db_bridge.drivers.dynamodb import DynamoDBDriver, marshall, unmarshall_item
from db_bridge.exceptions import ConnectionError, QueryError, ValidationError

BOTO3_CLIENT = "db_bridge.drivers.dynamodb.boto3.client"


@pytest.fixture
def params() -> dict[str, Any]:
    return {
        "region": "us-east-1",
        "access_key_id": "AKIAEXAMPLE",
        "secret_access_key": "wJalrXUtnFEMI",
    }


@pytest.fixture
def client() -> MagicMock:
    mock = MagicMock()
    mock.list_tables.return_value = {"TableNames": []}
    return mock


@pytest.mark.unit
class TestMarshalling:
    def test_marshall_scalars(self) -> None:
        assert marshall("alice") == {"S": "alice"}
        assert marshall(3) == {"N": "3"}
        assert marshall(1.5) == {"N": "1.5"}
        assert marshall(True) == {"BOOL": True}

    def test_marshall_nested_floats(self) -> None:
        assert marshall({"price": 9.99}) == {"M": {"price": {"N": "9.99"}}}

    def test_unmarshall_item(self) -> None:
        item = {
            "id": {"N": "5"},
            "score": {"N": "2.5"},
            "name": {"S": "bob"},
            "tags": {"SS": ["b", "a"]},
            "meta": {"M": {"age": {"N": "30"}}},
        }
        assert unmarshall_item(item) == {
            "id": 5,
            "score": 2.5,
            "name": "bob",
            "tags": ["a", "b"],
            "meta": {"age": 30},
        }


@pytest.mark.unit
class TestValidation:
    def test_missing_credentials(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            DynamoDBDriver({"region": "us-east-1"}).validate_config()
        assert exc_info.value.missing_fields == ["access_key_id", "secret_access_key"]

    def test_invalid_region(self, params: dict[str, Any]) -> None:
        with pytest.raises(ValidationError, match="Invalid AWS region format: moon"):
            DynamoDBDriver({**params, "region": "moon"}).validate_config()

    def test_endpoint_skips_region_check(self, params: dict[str, Any]) -> None:
        DynamoDBDriver(
            {**params, "region": "local", "endpoint": "http://localhost:8000"}
        ).validate_config()

    def test_camel_case_credentials(self) -> None:
        driver = DynamoDBDriver({
            "region": "eu-west-1",
            "accessKeyId": "AK",
            "secretAccessKey": "SK",
        })
        driver.validate_config()
        assert driver.parameters["access_key_id"] == "AK"


@pytest.mark.unit
class TestLifecycle:
    async def test_connect_builds_client(self, params: dict[str, Any], client: MagicMock) -> None:
        driver = DynamoDBDriver(
            {**params, "session_token": "tok", "endpoint": "http://localhost:8000"}
        )
        with patch(BOTO3_CLIENT, return_value=client) as boto_client:
            await driver.connect()

        assert boto_client.call_args.args == ("dynamodb",)
        kwargs = boto_client.call_args.kwargs
        assert kwargs["region_name"] == "us-east-1"
        assert kwargs["aws_session_token"] == "tok"
        assert kwargs["endpoint_url"] == "http://localhost:8000"
        client.list_tables.assert_called_once_with(Limit=1)
        assert driver.connected

    async def test_connect_failure(self, params: dict[str, Any], client: MagicMock) -> None:
        client.list_tables.side_effect = RuntimeError("UnrecognizedClientException")
        driver = DynamoDBDriver(params)
        with patch(BOTO3_CLIENT, return_value=client):
            with pytest.raises(ConnectionError, match="Failed to connect to DynamoDB database"):
                await driver.connect()
        client.close.assert_called_once()
        assert not driver.connected


@pytest.mark.unit
class TestExecute:
    async def test_partiql_with_parameters(self, params: dict[str, Any], client: MagicMock) -> None:
        client.execute_statement.return_value = {
            "Items": [{"pk": {"S": "user#1"}, "visits": {"N": "3"}}],
            "NextToken": "abc",
        }
        driver = DynamoDBDriver(params)
        with patch(BOTO3_CLIENT, return_value=client):
            await driver.connect()

        result = await driver.query('SELECT * FROM "users" WHERE pk = ?', ["user#1"])
        client.execute_statement.assert_called_once_with(
            Statement='SELECT * FROM "users" WHERE pk = ?',
            Parameters=[{"S": "user#1"}],
        )
        assert result.rows == [{"pk": "user#1", "visits": 3}]
        assert result.row_count == 1
        assert result.extras == {"next_token": "abc"}

    async def test_statement_without_items(self, params: dict[str, Any], client: MagicMock) -> None:
        client.execute_statement.return_value = {}
        driver = DynamoDBDriver(params)
        with patch(BOTO3_CLIENT, return_value=client):
            await driver.connect()

        result = await driver.query("INSERT INTO \"users\" VALUE {'pk': 'x'}")
        assert client.execute_statement.call_args.kwargs == {
            "Statement": "INSERT INTO \"users\" VALUE {'pk': 'x'}",
        }
        assert result.rows == []
        assert result.row_count == 0

    async def test_error_wrapped(self, params: dict[str, Any], client: MagicMock) -> None:
        client.execute_statement.side_effect = RuntimeError("ResourceNotFoundException")
        driver = DynamoDBDriver(params)
        with patch(BOTO3_CLIENT, return_value=client):
            await driver.connect()

        with pytest.raises(QueryError, match="DynamoDB query error: ResourceNotFoundException"):
            await driver.query('SELECT * FROM "missing"')


@pytest.mark.unit
class TestSchema:
    def test_describes_tables(self, client: MagicMock) -> None:
        paginator = MagicMock()
        paginator.paginate.return_value = [{"TableNames": ["orders"]}]
        client.get_paginator.return_value = paginator
        client.describe_table.return_value = {
            "Table": {
                "TableStatus": "ACTIVE",
                "ItemCount": 12,
                "TableSizeBytes": 2048,
                "KeySchema": [
                    {"AttributeName": "pk", "KeyType": "HASH"},
                    {"AttributeName": "sk", "KeyType": "RANGE"},
                ],
                "AttributeDefinitions": [{"AttributeName": "pk", "AttributeType": "S"}],
                "GlobalSecondaryIndexes": [{
                    "IndexName": "by_status",
                    "KeySchema": [{"AttributeName": "status", "KeyType": "HASH"}],
                    "Projection": {"ProjectionType": "ALL"},
                    "IndexStatus": "ACTIVE",
                }],
                "CreationDateTime": datetime(2024, 1, 2, tzinfo=timezone.utc),
            }
        }

        schema = DynamoDBDriver._introspect_sync(client)
        client.get_paginator.assert_called_once_with("list_tables")
        client.describe_table.assert_called_once_with(TableName="orders")
        table = schema["tables"][0]
        assert table["name"] == "orders"
        assert table["item_count"] == 12
        assert table["key_schema"] == [
            {"name": "pk", "key_type": "HASH"},
            {"name": "sk", "key_type": "RANGE"},
        ]
        assert table["global_secondary_indexes"][0]["name"] == "by_status"
        assert table["local_secondary_indexes"] == []
        assert table["created_at"] == "2024-01-02T00:00:00+00:00"


@pytest.mark.unit
class TestDisplay:
    def test_public_parameters_exclude_secrets(self, params: dict[str, Any]) -> None:
        public = DynamoDBDriver({**params, "session_token": "tok"}).public_parameters()
        assert public == {"region": "us-east-1", "access_key_id": "AKIAEXAMPLE"}

    def test_connection_string(self, params: dict[str, Any]) -> None:
        assert DynamoDBDriver(params).get_connection_string() == "dynamodb://us-east-1"
        local = DynamoDBDriver({**params, "endpoint": "http://localhost:8000"})
        assert local.get_connection_string() == "dynamodb://us-east-1@http://localhost:8000"
        assert local.describe()["host"] == "http://localhost:8000"
