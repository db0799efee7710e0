"""Type aliases for DynamoDB keys and items.

Type aliases:
    KeyValue: The types allowed as partition key or sort key values in DynamoDB.
        Includes str, bytes, bytearray, int, and Decimal.

    DynamoDBKey: A dictionary mapping key attribute names to key values. This is the
        format required by get_item, update_item, delete_item and batch_get_item.
        Example: {"user_id": "123", "timestamp": 1234567890}

    Item: A (possibly partial) record, an ordered mapping of attribute names to
        values. Field order is significant: generated expressions follow it.

Markers:
    UNSET: A field value meaning "given, but without a value". update operations
        store it as NULL, add_item leaves the field out.
"""

from decimal import Decimal
from typing import Any, TypeAlias

from pydantic_core import PydanticUndefined

KeyValue: TypeAlias = str | bytes | bytearray | int | Decimal
DynamoDBKey: TypeAlias = dict[str, KeyValue]
Item: TypeAlias = dict[str, Any]

UNSET: Any = PydanticUndefined


__all__ = [
    "UNSET",
    "DynamoDBKey",
    "Item",
    "KeyValue",
]
