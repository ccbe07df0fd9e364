from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable

from boto3.dynamodb.types import TypeSerializer

from ...infrastructure.aws_clients import dynamodb_client, dynamodb_table
from .errors import DdbInternal
from .pagination import decode_next_token, encode_next_token
from .retry import RetryPolicy, ddb_call


_serializer = TypeSerializer()


def _serialize_item(item: dict[str, Any]) -> dict[str, Any]:
    # DynamoDB client expects AttributeValue shape; TypeSerializer produces {'S': '...'} etc.
    return {k: _serializer.serialize(v) for k, v in item.items()}


def _with_expressions(
    kwargs: dict[str, Any],
    *,
    condition_expression: str | None,
    expression_attribute_names: dict[str, str] | None,
    expression_attribute_values: dict[str, Any] | None,
) -> dict[str, Any]:
    if condition_expression:
        kwargs["ConditionExpression"] = condition_expression
    if expression_attribute_names:
        kwargs["ExpressionAttributeNames"] = expression_attribute_names
    if expression_attribute_values:
        kwargs["ExpressionAttributeValues"] = expression_attribute_values
    return kwargs


@dataclass(slots=True)
class Page:
    items: list[dict[str, Any]]
    next_token: str | None


class DynamoTable:
    """Thin, retrying wrapper over one DynamoDB table (resource API)."""

    def __init__(self, *, table_name: str):
        self.table_name = str(table_name)
        self._table = dynamodb_table(self.table_name)
        self._client = dynamodb_client()

    # --- basic operations ---

    def get_item(self, *, key: dict[str, Any], consistent_read: bool = True) -> dict[str, Any] | None:
        # Lead/workspace reads gate conditional writes, so default to strong reads.
        def _op():
            resp = self._table.get_item(Key=key, ConsistentRead=bool(consistent_read))
            return resp.get("Item")

        return ddb_call("GetItem", _op, table_name=self.table_name, key=key)

    def put_item(
        self,
        *,
        item: dict[str, Any],
        condition_expression: str | None = None,
        expression_attribute_names: dict[str, str] | None = None,
        expression_attribute_values: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        def _op():
            kwargs = _with_expressions(
                {"Item": item},
                condition_expression=condition_expression,
                expression_attribute_names=expression_attribute_names,
                expression_attribute_values=expression_attribute_values,
            )
            return self._table.put_item(**kwargs)

        key = {k: item.get(k) for k in ("pk", "sk")}
        return ddb_call("PutItem", _op, table_name=self.table_name, key=key)

    def update_item(
        self,
        *,
        key: dict[str, Any],
        update_expression: str,
        expression_attribute_names: dict[str, str] | None,
        expression_attribute_values: dict[str, Any],
        condition_expression: str | None = None,
        return_values: str = "ALL_NEW",
    ) -> dict[str, Any] | None:
        def _op():
            kwargs = _with_expressions(
                {
                    "Key": key,
                    "UpdateExpression": update_expression,
                    "ReturnValues": return_values,
                },
                condition_expression=condition_expression,
                expression_attribute_names=expression_attribute_names,
                expression_attribute_values=expression_attribute_values,
            )
            resp = self._table.update_item(**kwargs)
            return resp.get("Attributes")

        return ddb_call("UpdateItem", _op, table_name=self.table_name, key=key)

    # --- query/pagination ---

    def query_page(
        self,
        *,
        key_condition_expression: Any,
        index_name: str | None = None,
        limit: int = 50,
        scan_index_forward: bool = False,
        filter_expression: Any | None = None,
        next_token: str | None = None,
    ) -> Page:
        lim = max(1, min(500, int(limit or 50)))
        lek = decode_next_token(next_token, scope=index_name) if next_token else None

        def _op():
            kwargs: dict[str, Any] = {
                "KeyConditionExpression": key_condition_expression,
                "ScanIndexForward": bool(scan_index_forward),
                "Limit": lim,
            }
            if index_name:
                kwargs["IndexName"] = index_name
            if filter_expression is not None:
                kwargs["FilterExpression"] = filter_expression
            if isinstance(lek, dict) and lek:
                kwargs["ExclusiveStartKey"] = lek
            return self._table.query(**kwargs)

        resp = ddb_call("Query", _op, table_name=self.table_name)
        items = resp.get("Items") or []
        return Page(items=items, next_token=encode_next_token(resp.get("LastEvaluatedKey"), scope=index_name))

    def query_all(
        self,
        *,
        key_condition_expression: Any,
        index_name: str | None = None,
        scan_index_forward: bool = False,
        filter_expression: Any | None = None,
        max_items: int = 2000,
    ) -> list[dict[str, Any]]:
        """Follow pagination until exhausted (or `max_items` is reached)."""
        out: list[dict[str, Any]] = []
        token: str | None = None
        while True:
            pg = self.query_page(
                key_condition_expression=key_condition_expression,
                index_name=index_name,
                limit=500,
                scan_index_forward=scan_index_forward,
                filter_expression=filter_expression,
                next_token=token,
            )
            out.extend(pg.items)
            token = pg.next_token
            if not token or len(out) >= max_items:
                return out[:max_items]

    # --- transactions ---

    def transact_write(
        self,
        *,
        puts: Iterable[dict[str, Any]],
        retry_policy: RetryPolicy | None = None,
    ) -> dict[str, Any]:
        # Entries come from `tx_put` (client shape).
        items: list[dict[str, Any]] = [{"Put": p} for p in puts]

        if not items:
            return {"ok": True}

        def _op():
            return self._client.transact_write_items(TransactItems=items)

        return ddb_call(
            "TransactWriteItems",
            _op,
            table_name=self.table_name,
            retry_policy=retry_policy or RetryPolicy(max_attempts=6, base_delay_s=0.08, max_delay_s=2.0),
        )

    # Transaction members (client shape)

    def tx_put(
        self,
        *,
        item: dict[str, Any],
        condition_expression: str | None = None,
        expression_attribute_names: dict[str, str] | None = None,
        expression_attribute_values: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        return _with_expressions(
            {"TableName": self.table_name, "Item": _serialize_item(item)},
            condition_expression=condition_expression,
            expression_attribute_names=expression_attribute_names,
            expression_attribute_values=_serialize_item(expression_attribute_values)
            if expression_attribute_values
            else None,
        )


def get_main_table() -> DynamoTable:
    from ...settings import settings

    if not settings.ddb_table_name:
        raise DdbInternal(message="DDB_TABLE_NAME is not set", operation="Config")
    return DynamoTable(table_name=settings.ddb_table_name)
