from collections.abc import Callable

import pytest
from pytest_asyncio import fixture as async_fixture
from types_aiobotocore_dynamodb.service_resource import (
    DynamoDBServiceResource as AsyncDynamoDBServiceResource,
    Table as AsyncTable,
)

from dynamorepo.exceptions import NotFoundError, RemoteOperationError, ValidationError
from dynamorepo.keys import Item
from dynamorepo.repository import AsyncRepository


@async_fixture
async def users(
    dynamodb: AsyncDynamoDBServiceResource,
    user_table: AsyncTable,
    make_user_repository: Callable[..., AsyncRepository],
) -> AsyncRepository:
    return make_user_repository(dynamodb)


@pytest.mark.asyncio
async def test_add_item_then_find_item(users: AsyncRepository, user: Item) -> None:
    await users.add_item(user)

    found = await users.find_item({"id": "1"})

    assert found is not None
    assert found["firstName"] == "John"
    assert found["role"] == "user"
    assert found["birthYearMonth"] == 199003
    assert found["createdAt"] == 1000
    assert found["updatedAt"] == 1000


@pytest.mark.asyncio
async def test_add_item_is_stored_as_written(
    users: AsyncRepository, user_table: AsyncTable, user: Item
) -> None:
    await users.add_item(user)

    response = await user_table.get_item(Key={"id": "1"})

    assert response["Item"] == {
        **user,
        "birthYearMonth": 199003,
        "createdAt": 1000,
        "updatedAt": 1000,
    }


@pytest.mark.asyncio
async def test_find_item_with_projection_returns_only_those_fields(
    users: AsyncRepository, user: Item
) -> None:
    await users.add_item(user)

    found = await users.find_item({"id": "1"}, ["id", "firstName"])

    assert found == {"id": "1", "firstName": "John"}


@pytest.mark.asyncio
async def test_find_item_missing_returns_none(users: AsyncRepository) -> None:
    assert await users.find_item({"id": "missing"}) is None


@pytest.mark.asyncio
async def test_add_item_rejected_by_hook_writes_nothing(
    users: AsyncRepository, user: Item
) -> None:
    del user["birthYear"]

    with pytest.raises(ValidationError):
        await users.add_item(user)

    assert await users.find_item({"id": "1"}) is None


@pytest.mark.asyncio
async def test_update_item_with_reserved_word_field(users: AsyncRepository, user: Item) -> None:
    await users.add_item(user)

    await users.update_item({"id": "1"}, {**user, "firstName": "Mike", "role": "admin"})

    found = await users.find_item({"id": "1"})
    assert found is not None
    assert found["firstName"] == "Mike"
    assert found["role"] == "admin"
    assert found["createdAt"] == 1000
    assert found["updatedAt"] == 2000


@pytest.mark.asyncio
async def test_update_item_keeps_given_updated_at(users: AsyncRepository, user: Item) -> None:
    await users.add_item(user)

    await users.update_item(
        {"id": "1"}, {**user, "surname": "Smith", "updatedAt": 1500}, replace_timestamp=False
    )

    found = await users.find_item({"id": "1"})
    assert found is not None
    assert found["surname"] == "Smith"
    assert found["updatedAt"] == 1500


@pytest.mark.asyncio
async def test_update_item_missing_raises_not_found(users: AsyncRepository, user: Item) -> None:
    with pytest.raises(NotFoundError):
        await users.update_item({"id": "1"}, user)

    assert await users.find_item({"id": "1"}) is None


@pytest.mark.asyncio
async def test_update_item_without_existence_check_creates_the_item(
    dynamodb: AsyncDynamoDBServiceResource,
    user_table: AsyncTable,
    make_user_repository: Callable[..., AsyncRepository],
    user: Item,
) -> None:
    users = make_user_repository(dynamodb, confirm_existence_before_update=False)

    await users.update_item({"id": "1"}, user)

    found = await users.find_item({"id": "1"})
    assert found is not None
    assert found["birthYearMonth"] == 199003
    assert found["createdAt"] == 1000
    assert found["updatedAt"] == 1000


@pytest.mark.asyncio
async def test_update_expression_item(users: AsyncRepository, user: Item) -> None:
    await users.add_item(user)

    await users.update_expression_item(
        {"id": "1"},
        "firstName = :firstName, role = :role",
        {"firstName": "Mike", "role": "admin"},
        user,
    )

    found = await users.find_item({"id": "1"})
    assert found is not None
    assert found["firstName"] == "Mike"
    assert found["role"] == "admin"
    assert found["surname"] == "Doe"
    assert found["createdAt"] == 1000
    assert found["updatedAt"] == 2000


@pytest.mark.asyncio
async def test_search_items_on_index(users: AsyncRepository, user: Item) -> None:
    await users.add_item(user)
    await users.add_item({**user, "id": "2", "birthMonth": 4})
    await users.add_item({**user, "id": "3", "country": "Brazil"})

    found = await users.search_items(
        "country = :country AND birthYearMonth = :birthYearMonth",
        {"country": "Australia", "birthYearMonth": 199003},
        "country-birth-index",
    )

    assert [item["id"] for item in found] == ["1"]


@pytest.mark.asyncio
async def test_search_items_on_base_table(users: AsyncRepository, user: Item) -> None:
    await users.add_item(user)

    found = await users.search_items("id = :id", {"id": "1"}, None, ["id", "role"])

    assert found == [{"id": "1", "role": "user"}]


@pytest.mark.asyncio
async def test_search_items_on_unknown_index_raises(users: AsyncRepository) -> None:
    with pytest.raises(RemoteOperationError) as exc_info:
        await users.search_items("country = :country", {"country": "Australia"}, "missing-index")

    assert str(exc_info.value).startswith("Error searching user by values")


@pytest.mark.asyncio
async def test_delete_item(users: AsyncRepository, user: Item) -> None:
    await users.add_item(user)

    await users.delete_item({"id": "1"})

    assert await users.find_item({"id": "1"}) is None


@pytest.mark.asyncio
async def test_delete_missing_item_succeeds(users: AsyncRepository) -> None:
    await users.delete_item({"id": "missing"})


@pytest.mark.asyncio
async def test_get_all_items(users: AsyncRepository, user: Item) -> None:
    await users.add_item(user)
    await users.add_item({**user, "id": "2"})

    found = await users.get_all_items(["id"])

    assert sorted(item["id"] for item in found) == ["1", "2"]


@pytest.mark.asyncio
async def test_batch_get_items(users: AsyncRepository, user: Item) -> None:
    await users.add_item(user)
    await users.add_item({**user, "id": "2"})

    found = await users.batch_get_items([{"id": "1"}, {"id": "2"}, {"id": "missing"}])

    assert sorted(item["id"] for item in found) == ["1", "2"]


@pytest.mark.asyncio
async def test_batch_get_items_without_keys(users: AsyncRepository) -> None:
    assert await users.batch_get_items([]) == []
