from collections.abc import AsyncGenerator, Generator
from os import environ

import aioboto3
from moto.server import ThreadedMotoServer
from pytest import fixture
from pytest_asyncio import fixture as async_fixture
from types_aiobotocore_dynamodb.service_resource import (
    DynamoDBServiceResource as AsyncDynamoDBServiceResource,
    Table as AsyncTable,
)


@fixture(scope="session", autouse=True)
def aws_credentials() -> None:
    environ["AWS_ACCESS_KEY_ID"] = "testing"
    environ["AWS_SECRET_ACCESS_KEY"] = "testing"  # noqa: S105
    environ["AWS_SECURITY_TOKEN"] = "testing"  # noqa: S105
    environ["AWS_SESSION_TOKEN"] = "testing"  # noqa: S105
    environ["AWS_DEFAULT_REGION"] = "us-east-1"


@fixture(scope="session")
def dynamodb_endpoint(aws_credentials: None) -> Generator[str, None, None]:
    """Session-scoped moto server providing the endpoint URL."""
    server = ThreadedMotoServer(ip_address="127.0.0.1", port=0, verbose=False)
    server.start()
    host, port = server.get_host_and_port()
    yield f"http://{host}:{port}"
    server.stop()


@async_fixture
async def dynamodb(
    dynamodb_endpoint: str,
) -> AsyncGenerator[AsyncDynamoDBServiceResource, None]:
    """Function-scoped aioboto3 resource reusing the session-scoped endpoint."""
    session = aioboto3.Session()
    async with session.resource("dynamodb", endpoint_url=dynamodb_endpoint) as dynamodb:
        yield dynamodb


@async_fixture
async def user_table(
    dynamodb: AsyncDynamoDBServiceResource,
) -> AsyncGenerator[AsyncTable, None]:
    """The user table with a GSI on (country, birthYearMonth)."""
    table = await dynamodb.create_table(
        TableName="user",
        KeySchema=[
            {"AttributeName": "id", "KeyType": "HASH"},
        ],
        AttributeDefinitions=[
            {"AttributeName": "id", "AttributeType": "S"},
            {"AttributeName": "country", "AttributeType": "S"},
            {"AttributeName": "birthYearMonth", "AttributeType": "N"},
        ],
        GlobalSecondaryIndexes=[
            {
                "IndexName": "country-birth-index",
                "KeySchema": [
                    {"AttributeName": "country", "KeyType": "HASH"},
                    {"AttributeName": "birthYearMonth", "KeyType": "RANGE"},
                ],
                "Projection": {"ProjectionType": "ALL"},
            },
        ],
        BillingMode="PAY_PER_REQUEST",
    )
    await table.wait_until_exists()

    yield table

    await table.delete()
