"""Shared configuration and request building for dynamorepo repositories.

This module provides the _RepositoryBase class, which owns a repository's
configuration (table, key schema, projection, options, upsert hook) and turns
operation arguments into the keyword arguments of DynamoDB calls. It performs
no I/O; the asynchronous operations live in dynamorepo.repository.
"""

import time
from collections.abc import Callable, Mapping, Sequence
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict
from pydantic_core import to_json

from dynamorepo.exceptions import InvalidKeySchemaError, MissingKeyValueError, ValidationError
from dynamorepo.expressions import (
    CREATED_AT,
    UPDATED_AT,
    ExpressionBuilder,
    collect_attribute_names,
    rewrite_expression,
)
from dynamorepo.keys import UNSET, DynamoDBKey, Item

if TYPE_CHECKING:
    from types_aiobotocore_dynamodb.service_resource import (
        DynamoDBServiceResource as AsyncDynamoDBServiceResource,
    )
else:
    AsyncDynamoDBServiceResource = Any

UpsertHook = Callable[[Item], Item]
Clock = Callable[[], int]


class KeySchema(BaseModel):
    """Key attributes of a table: a partition key and an optional sort key."""

    model_config = ConfigDict(frozen=True)

    partition_key: str
    sort_key: str | None = None

    @property
    def fields(self) -> tuple[str, ...]:
        if self.sort_key is None:
            return (self.partition_key,)
        return (self.partition_key, self.sort_key)


class RepositoryOptions(BaseModel):
    """Behavior flags of a repository.

    Attributes:
        logging: Emit progress lines through the ``dynamorepo.repository`` logger.
        confirm_existence_before_update: Read the item before update_item and
            raise NotFoundError when it does not exist.
        default_index_name: Index queried by search_items when the caller does
            not name one. None means the base table.

    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    logging: bool = True
    confirm_existence_before_update: bool = True
    default_index_name: str | None = None


def _identity(item: Item) -> Item:
    return item


def _now_millis() -> int:
    return time.time_ns() // 1_000_000


def _parse_key_schema(*, partition_key: str, sort_key: str | None) -> KeySchema:
    """Validate the declared key attributes.

    Raises:
        InvalidKeySchemaError: If no partition key is given or the sort key
            repeats it.

    """
    if not partition_key:
        raise InvalidKeySchemaError()
    if sort_key is not None and (not sort_key or sort_key == partition_key):
        raise InvalidKeySchemaError(
            f"Invalid key schema: sort key {sort_key!r} must differ from partition key"
        )
    return KeySchema(partition_key=partition_key, sort_key=sort_key)


class _RepositoryBase:
    """Internal base class holding repository configuration and request builders.

    Subclasses provide the I/O. Everything here is synchronous and side-effect
    free apart from the two configuration setters.

    Do not subclass this directly. Use AsyncRepository instead.
    """

    def __init__(
        self,
        resource: AsyncDynamoDBServiceResource,
        table_name: str,
        projection: Sequence[str],
        partition_key: str,
        sort_key: str | None = None,
        *,
        options: RepositoryOptions | Mapping[str, Any] | None = None,
        upsert_hook: UpsertHook | None = None,
        clock: Clock | None = None,
    ) -> None:
        if not table_name:
            raise ValueError("table_name is required")

        self._resource = resource
        self._table_name = table_name
        self._key_schema = _parse_key_schema(partition_key=partition_key, sort_key=sort_key)
        if options is None:
            options = RepositoryOptions()
        elif not isinstance(options, RepositoryOptions):
            options = RepositoryOptions.model_validate(options)
        self.options: RepositoryOptions = options
        self._upsert_hook: UpsertHook = upsert_hook or _identity
        self._clock: Clock = clock or _now_millis
        self._builder = ExpressionBuilder(projection=projection, key_fields=self._key_schema.fields)

    @property
    def table_name(self) -> str:
        return self._table_name

    @property
    def key_schema(self) -> KeySchema:
        return self._key_schema

    @property
    def projection_expression(self) -> str:
        return self._builder.projection_expression

    def set_upsert_hook(self, upsert_hook: UpsertHook | None) -> None:
        """Install the function run on every item before add and update.

        The hook receives a copy of the item and returns the item to write. Use it
        to derive fields (e.g. index attributes) or to reject the item by raising
        ValidationError. Passing None restores the identity hook.
        """
        self._upsert_hook = upsert_hook or _identity

    def set_projection(self, projection: Sequence[str]) -> None:
        """Re-declare the fields read and written by default.

        Declare every field of the item type, otherwise reads will not return it.
        """
        self._builder = ExpressionBuilder(projection=projection, key_fields=self._key_schema.fields)

    def _describe_key(self, key: Mapping[str, Any]) -> str:
        return to_json(
            {field: key.get(field) for field in self._key_schema.fields},
            bytes_mode="base64",
            fallback=repr,
        ).decode()

    def _build_key(self, key: Mapping[str, Any], *, operation: str) -> DynamoDBKey:
        """Reduce ``key`` to the table's key attributes.

        Raises:
            MissingKeyValueError: If a key attribute has no value.

        """
        dynamodb_key: DynamoDBKey = {}
        for field in self._key_schema.fields:
            value = key.get(field)
            if value is None or value is UNSET:
                raise MissingKeyValueError(
                    attribute=field, table_name=self._table_name, operation=operation
                )
            dynamodb_key[field] = value
        return dynamodb_key

    def _apply_upsert_hook(self, item: Mapping[str, Any]) -> Item:
        try:
            return self._upsert_hook(dict(item))
        except ValueError as err:
            raise ValidationError(str(err)) from err

    @staticmethod
    def _nullify_unset(item: Mapping[str, Any]) -> Item:
        return {field: None if value is UNSET else value for field, value in item.items()}

    @staticmethod
    def _stamp(item: Item, field: str, *, replace: bool, now: int) -> None:
        if replace or item.get(field) is None:
            item[field] = now

    def _resolve_index_name(self, index_name: Any) -> str | None:
        if index_name is UNSET:
            return self.options.default_index_name
        return index_name  # type: ignore[no-any-return]

    def _build_get_kwargs(
        self,
        *,
        key: DynamoDBKey,
        projection: Sequence[str] | None,
    ) -> dict[str, Any]:
        """Build kwargs dictionary for get_item operation."""
        projection_expression = self._builder.build_projection(projection)
        get_kwargs: dict[str, Any] = {
            "Key": key,
            "ProjectionExpression": projection_expression,
        }
        attribute_names = collect_attribute_names(projection_expression)
        if attribute_names:
            get_kwargs["ExpressionAttributeNames"] = attribute_names
        return get_kwargs

    def _build_query_kwargs(
        self,
        *,
        key_condition: str,
        values: Mapping[str, Any],
        index_name: str | None,
        projection: Sequence[str] | None,
        attribute_names: Mapping[str, str] | None,
    ) -> dict[str, Any]:
        """Build kwargs dictionary for query operation.

        Args:
            key_condition: KeyConditionExpression written by the caller.
            values: Field values referenced as ``:field`` by the key condition.
            index_name: Index to query, None for the base table.
            projection: Optional subset of the declared fields.
            attribute_names: Extra aliases used by the key condition. They take
                precedence over the generated ones.

        Returns:
            Dictionary of kwargs to pass to table.query().

        """
        projection_expression = self._builder.build_projection(projection)
        query_kwargs: dict[str, Any] = {
            "KeyConditionExpression": key_condition,
            "ProjectionExpression": projection_expression,
        }

        if index_name is not None:
            query_kwargs["IndexName"] = index_name

        expression_values = self._builder.build_search_values(values)
        if expression_values:
            query_kwargs["ExpressionAttributeValues"] = expression_values

        names = collect_attribute_names(projection_expression, key_condition) or {}
        names |= attribute_names or {}
        if names:
            query_kwargs["ExpressionAttributeNames"] = names

        return query_kwargs

    def _build_scan_kwargs(self, *, projection: Sequence[str] | None) -> dict[str, Any]:
        """Build kwargs dictionary for scan operation."""
        projection_expression = self._builder.build_projection(projection)
        scan_kwargs: dict[str, Any] = {"ProjectionExpression": projection_expression}
        attribute_names = collect_attribute_names(projection_expression)
        if attribute_names:
            scan_kwargs["ExpressionAttributeNames"] = attribute_names
        return scan_kwargs

    def _build_put_item(
        self,
        item: Mapping[str, Any],
        *,
        replace_timestamps: bool,
        now: int,
    ) -> Item:
        """Build the item written by put_item.

        UNSET fields are left out, the upsert hook runs, then both bookkeeping
        fields are stamped.
        """
        put_item = self._apply_upsert_hook(
            {field: value for field, value in item.items() if value is not UNSET}
        )
        self._stamp(put_item, CREATED_AT, replace=replace_timestamps, now=now)
        self._stamp(put_item, UPDATED_AT, replace=replace_timestamps, now=now)
        return put_item

    def _build_update_kwargs(
        self,
        *,
        key: DynamoDBKey,
        item: Mapping[str, Any],
        now: int,
    ) -> dict[str, Any]:
        """Build kwargs dictionary for update_item operation.

        Args:
            key: The DynamoDB key identifying the item.
            item: The fields to write, already passed through the upsert hook
                and stamped with updatedAt.
            now: Fallback createdAt for items written for the first time.

        Returns:
            Dictionary of kwargs to pass to table.update_item().

        """
        update_kwargs: dict[str, Any] = {
            "Key": key,
            "UpdateExpression": f"SET {self._builder.build_update_expression(item)}",
            "ExpressionAttributeValues": self._builder.build_update_values(item, now=now),
        }
        attribute_names = self._builder.build_attribute_names(item)
        if attribute_names is not None:
            update_kwargs["ExpressionAttributeNames"] = attribute_names
        return update_kwargs

    def _build_expression_update_kwargs(
        self,
        *,
        key: DynamoDBKey,
        update_expression: str,
        values: Mapping[str, Any],
        item: Mapping[str, Any],
        attribute_names: Mapping[str, str] | None,
        now: int,
    ) -> dict[str, Any]:
        """Build kwargs dictionary for update_item with a caller-authored fragment.

        The fragment is rewritten (reserved words aliased, fields it already
        assigns removed from ``item``) and appended to the generated assignments.

        Args:
            key: The DynamoDB key identifying the item.
            update_expression: SET assignments written by the caller, without ``SET``.
            values: Values referenced by the fragment. Keys may omit the leading ``:``.
            item: The fields the repository assigns itself.
            attribute_names: Extra aliases used by the fragment.
            now: Fallback createdAt for items written for the first time.

        Returns:
            Dictionary of kwargs to pass to table.update_item().

        """
        fragment, residual = rewrite_expression(update_expression, item)
        expression = f"SET {self._builder.build_update_expression(residual)}, {fragment}"

        expression_values = self._builder.build_update_values(residual, now=now)
        expression_values |= self._builder.build_search_values(values)

        update_kwargs: dict[str, Any] = {
            "Key": key,
            "UpdateExpression": expression,
            "ExpressionAttributeValues": expression_values,
        }

        names = collect_attribute_names(expression) or {}
        names |= attribute_names or {}
        if names:
            update_kwargs["ExpressionAttributeNames"] = names

        return update_kwargs

    def _build_batch_get_kwargs(self, *, keys: Sequence[DynamoDBKey]) -> dict[str, Any]:
        """Build kwargs dictionary for batch_get_item operation."""
        projection_expression = self._builder.projection_expression
        request: dict[str, Any] = {
            "Keys": list(keys),
            "ProjectionExpression": projection_expression,
        }
        attribute_names = collect_attribute_names(projection_expression)
        if attribute_names:
            request["ExpressionAttributeNames"] = attribute_names
        return {"RequestItems": {self._table_name: request}}


__all__ = [
    "AsyncDynamoDBServiceResource",
    "Clock",
    "KeySchema",
    "RepositoryOptions",
    "UpsertHook",
    "_RepositoryBase",
]
