"""Async repository over a DynamoDB table.

This module provides the primary public API, AsyncRepository: a CRUD and query
surface over one table, working on plain dict items. It is configured once
(table, key attributes, projection, options) and optionally given an upsert
hook that validates or derives fields before every write.
"""

import logging
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any

from botocore.exceptions import BotoCoreError, ClientError

from dynamorepo.base import _RepositoryBase
from dynamorepo.exceptions import NotFoundError, wrap_remote_error
from dynamorepo.expressions import UPDATED_AT
from dynamorepo.keys import UNSET, Item

if TYPE_CHECKING:
    from types_aiobotocore_dynamodb.service_resource import Table as AsyncTable
else:
    AsyncTable = Any

logger = logging.getLogger(__name__)

# Failures raised by the client: service errors and transport errors.
_REMOTE_ERRORS = (ClientError, BotoCoreError)


class AsyncRepository(_RepositoryBase):
    """Repository for one DynamoDB table (async version).

    Items are dicts. Every stored item carries ``createdAt`` and ``updatedAt``
    (epoch milliseconds) maintained by the repository. Fields whose names are
    DynamoDB reserved words are aliased automatically, provided they are part
    of the declared projection.

    Requires an aioboto3 DynamoDB service resource.

    Example:
        import aioboto3
        from dynamorepo import AsyncRepository, ValidationError

        def derive_birth_year_month(item):
            if item.get("birthYear") is None or item.get("birthMonth") is None:
                raise ValidationError(f"User with id {item.get('id')} doesn't have all required fields")
            item["birthYearMonth"] = item["birthYear"] * 100 + item["birthMonth"]
            return item

        async def main():
            session = aioboto3.Session()
            async with session.resource("dynamodb") as dynamodb:
                users = AsyncRepository(
                    dynamodb,
                    "user",
                    ["id", "firstName", "birthYear", "birthMonth", "role", "birthYearMonth"],
                    "id",
                    upsert_hook=derive_birth_year_month,
                )
                await users.add_item({"id": "1", "firstName": "John", "birthYear": 1990, "birthMonth": 3})
                user = await users.find_item({"id": "1"})

    """

    _cached_table: AsyncTable | None = None

    async def _table(self) -> AsyncTable:
        if self._cached_table is None:
            self._cached_table = await self._resource.Table(self._table_name)
        return self._cached_table

    def _log(self, message: str, *args: Any) -> None:
        if self.options.logging:
            logger.info(message, *args)

    async def find_item(
        self,
        key: Mapping[str, Any] | None,
        projection: Sequence[str] | None = None,
    ) -> Item | None:
        """Get an item by its key.

        Args:
            key: The key attributes of the item.
            projection: Optional subset of the declared fields to read. Only those
                fields are returned.

        Returns:
            The item if found, None otherwise (or when no key is given).

        Raises:
            MissingKeyValueError: If the key lacks a key attribute.
            RemoteOperationError: If the DynamoDB call fails.

        """
        if not key:
            return None

        get_kwargs = self._build_get_kwargs(
            key=self._build_key(key, operation="find_item"),
            projection=projection,
        )
        description = self._describe_key(key)
        self._log("Finding %s by key %s...", self._table_name, description)

        try:
            table = await self._table()
            response = await table.get_item(**get_kwargs)
        except _REMOTE_ERRORS as err:
            raise wrap_remote_error(
                err,
                operation="find_item",
                table_name=self._table_name,
                context=f"Error finding {self._table_name} by key {description}",
            ) from err

        return response.get("Item")

    async def search_items(
        self,
        key_condition: str,
        values: Mapping[str, Any],
        index_name: str | None = UNSET,
        projection: Sequence[str] | None = None,
        attribute_names: Mapping[str, str] | None = None,
    ) -> list[Item]:
        """Query items with a key condition, on the table or one of its indexes.

        Args:
            key_condition: KeyConditionExpression referencing values as ``:field``,
                e.g. ``"country = :country AND birthYearMonth = :birthYearMonth"``.
            values: The values referenced by the key condition, keyed by field
                (``"country"``) or by placeholder (``":country"``).
            index_name: The index to query. None queries the base table; leaving
                it out uses the repository's ``default_index_name``.
            projection: Optional subset of the declared fields to read.
            attribute_names: Aliases used by the key condition, e.g. ``{"#s": "status"}``.

        Returns:
            The matching items, in the key order of the queried index.

        Raises:
            RemoteOperationError: If the DynamoDB call fails.

        """
        if not key_condition:
            return []

        query_kwargs = self._build_query_kwargs(
            key_condition=key_condition,
            values=values or {},
            index_name=self._resolve_index_name(index_name),
            projection=projection,
            attribute_names=attribute_names,
        )
        self._log(
            "Searching %s by values %s, key condition %s or index %s...",
            self._table_name,
            values,
            key_condition,
            query_kwargs.get("IndexName"),
        )

        try:
            table = await self._table()
            response = await table.query(**query_kwargs)
        except _REMOTE_ERRORS as err:
            raise wrap_remote_error(
                err,
                operation="search_items",
                table_name=self._table_name,
                context=(
                    f"Error searching {self._table_name} by values {values} "
                    f"and key condition {key_condition}"
                ),
            ) from err

        return list(response.get("Items", []))

    async def add_item(
        self,
        item: Mapping[str, Any] | None,
        replace_timestamps: bool = True,
    ) -> None:
        """Write a whole item. An existing item with the same key is replaced.

        Args:
            item: The item, key attributes included.
            replace_timestamps: Stamp createdAt and updatedAt with the current time.
                When False, values already present on the item are kept.

        Raises:
            ValidationError: If the upsert hook rejects the item. Nothing is written.
            RemoteOperationError: If the DynamoDB call fails.

        """
        if not item:
            return

        description = self._describe_key(item)
        self._log("Adding %s with key %s...", self._table_name, description)
        put_item = self._build_put_item(
            item, replace_timestamps=replace_timestamps, now=self._clock()
        )

        try:
            table = await self._table()
            await table.put_item(Item=put_item)
        except _REMOTE_ERRORS as err:
            raise wrap_remote_error(
                err,
                operation="add_item",
                table_name=self._table_name,
                context=f"Error adding {self._table_name} with key {description}",
            ) from err

        self._log("Adding %s... Done", self._table_name)

    async def update_item(
        self,
        key: Mapping[str, Any] | None,
        item: Mapping[str, Any] | None,
        replace_timestamp: bool = True,
    ) -> None:
        """Update some fields of an item.

        UNSET values are written as NULL. Key attributes present in ``item`` are
        ignored. createdAt is only set if the item has none yet.

        Args:
            key: The key attributes of the item.
            item: The fields to write.
            replace_timestamp: Stamp updatedAt with the current time. When False,
                an updatedAt present on ``item`` is kept.

        Raises:
            ValidationError: If the upsert hook rejects the item.
            NotFoundError: If existence confirmation is enabled and the item
                does not exist.
            RemoteOperationError: If a DynamoDB call fails.

        """
        if not key or item is None:
            return

        description = self._describe_key(key)
        self._log("Updating %s with key %s...", self._table_name, description)
        dynamodb_key = self._build_key(key, operation="update_item")
        update_item = self._apply_upsert_hook(self._nullify_unset(item))

        if self.options.confirm_existence_before_update:
            existing_item = await self.find_item(key)
            if existing_item is None:
                raise NotFoundError(
                    f"Error updating {self._table_name} with key {description} - not found",
                    table_name=self._table_name,
                    key=dynamodb_key,
                )

        now = self._clock()
        self._stamp(update_item, UPDATED_AT, replace=replace_timestamp, now=now)
        update_kwargs = self._build_update_kwargs(key=dynamodb_key, item=update_item, now=now)

        try:
            table = await self._table()
            await table.update_item(**update_kwargs)
        except _REMOTE_ERRORS as err:
            raise wrap_remote_error(
                err,
                operation="update_item",
                table_name=self._table_name,
                context=f"Error updating {self._table_name} with key {description}",
            ) from err

        self._log("Updating %s... Done", self._table_name)

    async def update_expression_item(
        self,
        key: Mapping[str, Any] | None,
        update_expression: str,
        values: Mapping[str, Any],
        item: Mapping[str, Any] | None,
        attribute_names: Mapping[str, str] | None = None,
        replace_timestamp: bool = True,
    ) -> None:
        """Update an item with a custom SET fragment plus the generated assignments.

        Fields of ``item`` already assigned by the fragment are left to it. Bare
        reserved words in the fragment are aliased automatically.

        Args:
            key: The key attributes of the item.
            update_expression: SET assignments without the ``SET`` keyword, e.g.
                ``"visits = visits + :one, role = :role"``.
            values: Values referenced by the fragment. ``{"one": 1}`` and
                ``{":one": 1}`` are equivalent.
            item: Fields the repository assigns itself.
            attribute_names: Extra aliases used by the fragment.
            replace_timestamp: Stamp updatedAt with the current time. When False,
                an updatedAt present on ``item`` is kept.

        Raises:
            ValidationError: If the upsert hook rejects the item.
            RemoteOperationError: If the DynamoDB call fails.

        """
        if not key or not update_expression or not item:
            return

        description = self._describe_key(key)
        self._log("Updating %s with key %s by expression...", self._table_name, description)
        dynamodb_key = self._build_key(key, operation="update_expression_item")
        update_item = self._apply_upsert_hook(self._nullify_unset(item))

        now = self._clock()
        self._stamp(update_item, UPDATED_AT, replace=replace_timestamp, now=now)
        update_kwargs = self._build_expression_update_kwargs(
            key=dynamodb_key,
            update_expression=update_expression,
            values=values or {},
            item=update_item,
            attribute_names=attribute_names,
            now=now,
        )

        try:
            table = await self._table()
            await table.update_item(**update_kwargs)
        except _REMOTE_ERRORS as err:
            raise wrap_remote_error(
                err,
                operation="update_expression_item",
                table_name=self._table_name,
                context=(
                    f"Error updating {self._table_name} with key {description} "
                    f"and expression {update_kwargs['UpdateExpression']}"
                ),
            ) from err

        self._log("Updating %s by expression... Done", self._table_name)

    async def delete_item(self, key: Mapping[str, Any] | None) -> None:
        """Delete an item by its key.

        Deleting an item that does not exist succeeds.

        Raises:
            RemoteOperationError: If the DynamoDB call fails.

        """
        if not key:
            return

        description = self._describe_key(key)
        self._log("Deleting %s with key %s...", self._table_name, description)
        dynamodb_key = self._build_key(key, operation="delete_item")

        try:
            table = await self._table()
            await table.delete_item(Key=dynamodb_key)
        except _REMOTE_ERRORS as err:
            raise wrap_remote_error(
                err,
                operation="delete_item",
                table_name=self._table_name,
                context=f"Error deleting {self._table_name} with key {description}",
            ) from err

        self._log("Deleting %s with key %s... Done", self._table_name, description)

    async def get_all_items(self, projection: Sequence[str] | None = None) -> list[Item]:
        """Scan the table.

        A single scan call is made: DynamoDB returns at most 1 MB per call and
        the remainder is not fetched.

        Args:
            projection: Optional subset of the declared fields to read.

        Raises:
            RemoteOperationError: If the DynamoDB call fails.

        """
        self._log("Getting all %s...", self._table_name)
        scan_kwargs = self._build_scan_kwargs(projection=projection)

        try:
            table = await self._table()
            response = await table.scan(**scan_kwargs)
        except _REMOTE_ERRORS as err:
            raise wrap_remote_error(
                err,
                operation="get_all_items",
                table_name=self._table_name,
                context=f"Error getting all {self._table_name}",
            ) from err

        self._log("Getting all %s... Done", self._table_name)
        return list(response.get("Items", []))

    async def batch_get_items(self, keys: Sequence[Mapping[str, Any]] | None) -> list[Item]:
        """Get several items by key in one batch_get_item call.

        Keys left unprocessed by DynamoDB are not retried.

        Args:
            keys: The keys of the items. An empty list returns an empty list.

        Raises:
            MissingKeyValueError: If a key lacks a key attribute.
            RemoteOperationError: If the DynamoDB call fails.

        """
        if not keys:
            return []

        self._log("Batch getting %s...", self._table_name)
        batch_kwargs = self._build_batch_get_kwargs(
            keys=[self._build_key(key, operation="batch_get_items") for key in keys]
        )

        try:
            response = await self._resource.batch_get_item(**batch_kwargs)
        except _REMOTE_ERRORS as err:
            raise wrap_remote_error(
                err,
                operation="batch_get_items",
                table_name=self._table_name,
                context=f"Error batch getting {self._table_name}",
            ) from err

        unprocessed = response.get("UnprocessedKeys", {}).get(self._table_name)
        if unprocessed:
            logger.warning(
                "Batch getting %s left %d keys unprocessed",
                self._table_name,
                len(unprocessed.get("Keys", [])),
            )

        self._log("Batch getting %s... Done", self._table_name)
        return list(response.get("Responses", {}).get(self._table_name, []))


__all__ = [
    "AsyncRepository",
]
