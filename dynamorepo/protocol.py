"""Repository protocol for dynamorepo repositories.

RepositoryProtocol describes the operation surface of AsyncRepository with
typing.Protocol and @runtime_checkable, so application code can depend on the
interface and accept test doubles or alternative implementations through duck
typing and isinstance() checks.
"""

from collections.abc import Mapping, Sequence
from typing import Any, Protocol, runtime_checkable

from dynamorepo.keys import Item


@runtime_checkable
class RepositoryProtocol(Protocol):
    """
    Protocol for item repositories.

    The protocol is divided into:

    - **Configuration**: Upsert hook and projection declaration
    - **Reads**: Point reads, key-condition queries, scans and batch reads
    - **Writes**: Whole-item puts, field updates, expression updates and deletes

    Example:
        class InMemoryUsers:
            async def find_item(self, key, projection=None):
                ...

        def build_service(users: RepositoryProtocol) -> UserService:
            return UserService(users)
    """

    # -------------------------------------------------------------------------
    # Configuration
    # -------------------------------------------------------------------------

    def set_upsert_hook(self, upsert_hook: Any) -> None: ...

    def set_projection(self, projection: Sequence[str]) -> None: ...

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def find_item(
        self,
        key: Mapping[str, Any] | None,
        projection: Sequence[str] | None = None,
    ) -> Item | None: ...

    async def search_items(
        self,
        key_condition: str,
        values: Mapping[str, Any],
        index_name: str | None = ...,
        projection: Sequence[str] | None = None,
        attribute_names: Mapping[str, str] | None = None,
    ) -> list[Item]: ...

    async def get_all_items(self, projection: Sequence[str] | None = None) -> list[Item]: ...

    async def batch_get_items(self, keys: Sequence[Mapping[str, Any]] | None) -> list[Item]: ...

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def add_item(
        self,
        item: Mapping[str, Any] | None,
        replace_timestamps: bool = True,
    ) -> None: ...

    async def update_item(
        self,
        key: Mapping[str, Any] | None,
        item: Mapping[str, Any] | None,
        replace_timestamp: bool = True,
    ) -> None: ...

    async def update_expression_item(
        self,
        key: Mapping[str, Any] | None,
        update_expression: str,
        values: Mapping[str, Any],
        item: Mapping[str, Any] | None,
        attribute_names: Mapping[str, str] | None = None,
        replace_timestamp: bool = True,
    ) -> None: ...

    async def delete_item(self, key: Mapping[str, Any] | None) -> None: ...


__all__ = [
    "RepositoryProtocol",
]
