"""Shared test fixtures and the example user repository.

This module provides:
- The user item used throughout the tests
- UserRepository, a repository with an upsert hook deriving birthYearMonth
- A deterministic clock so bookkeeping timestamps can be asserted
"""

from collections.abc import Callable
from typing import Any

from pytest import fixture

from dynamorepo.base import AsyncDynamoDBServiceResource, RepositoryOptions
from dynamorepo.exceptions import ValidationError
from dynamorepo.keys import Item
from dynamorepo.repository import AsyncRepository

USER_TABLE = "user"
USER_FIELDS = [
    "id",
    "firstName",
    "surname",
    "email",
    "birthYear",
    "birthMonth",
    "country",
    "role",
    "birthYearMonth",
]
COUNTRY_BIRTH_INDEX = "country-birth-index"


def derive_birth_year_month(item: Item) -> Item:
    if item.get("birthYear") is None or item.get("birthMonth") is None:
        raise ValidationError(f"User with id {item.get('id')} doesn't have all required fields")
    item["birthYearMonth"] = item["birthYear"] * 100 + item["birthMonth"]
    return item


class UserRepository(AsyncRepository):
    """Users keyed by id. ``role`` is a DynamoDB reserved word."""

    def __init__(
        self,
        resource: AsyncDynamoDBServiceResource,
        *,
        options: RepositoryOptions | dict[str, Any] | None = None,
        clock: Callable[[], int] | None = None,
    ) -> None:
        super().__init__(resource, USER_TABLE, [], "id", options=options, clock=clock)
        self.set_projection(USER_FIELDS)
        self.set_upsert_hook(derive_birth_year_month)


class StepClock:
    """Returns 1000, 2000, 3000... on successive calls."""

    def __init__(self, start: int = 1000, step: int = 1000) -> None:
        self.current = start - step
        self.step = step

    def __call__(self) -> int:
        self.current += self.step
        return self.current


@fixture
def user() -> Item:
    return {
        "id": "1",
        "country": "Australia",
        "email": "user1@dynamorepo.test",
        "firstName": "John",
        "surname": "Doe",
        "birthYear": 1990,
        "birthMonth": 3,
        "role": "user",
    }


@fixture
def clock() -> StepClock:
    return StepClock()


@fixture
def make_user_repository(clock: StepClock) -> Callable[..., UserRepository]:
    """Build a UserRepository over the given resource, with the test clock.

    Keyword arguments are repository options.
    """

    def _make(resource: AsyncDynamoDBServiceResource, **options: Any) -> UserRepository:
        return UserRepository(resource, options=options or None, clock=clock)

    return _make
