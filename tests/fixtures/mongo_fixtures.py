"""MongoDB/Beanie fixtures for testing."""

import os
from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from mongomock_motor import AsyncMongoMockClient
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from app.schemas import DOCUMENT_MODELS, init_beanie_odm

# All Beanie document models
BEANIE_MODELS = DOCUMENT_MODELS


@pytest.fixture(scope="session")
def mongo_url() -> str | None:
    """
    MongoDB URL for testing.

    When MONGO_URL_LIVECAST_TEST is set the tests run against that server,
    otherwise against an in-memory mongomock database.
    """
    return os.environ.get("MONGO_URL_LIVECAST_TEST")


@pytest.fixture(scope="session")
def test_db_name() -> str:
    """Get test database name."""
    return "livecast_test_db"


@pytest_asyncio.fixture(scope="function")
async def mongo_client(mongo_url: str | None) -> AsyncGenerator[AsyncIOMotorClient | AsyncMongoMockClient]:
    """Create MongoDB client for testing (function-scoped to avoid event loop issues)."""
    if mongo_url:
        client = AsyncIOMotorClient(mongo_url, tz_aware=True)
        yield client
        client.close()
    else:
        yield AsyncMongoMockClient()


@pytest_asyncio.fixture(scope="function")
async def beanie_db(
    mongo_client: AsyncIOMotorClient | AsyncMongoMockClient,
    test_db_name: str,
) -> AsyncGenerator[AsyncIOMotorDatabase]:
    """
    Initialize Beanie with the test database.

    Each test function gets a fresh Beanie init. Use the clear_collections fixture
    to clean data between tests.
    """
    db = mongo_client[test_db_name]
    await init_beanie_odm(db)
    yield db


@pytest_asyncio.fixture(autouse=False)
async def clear_collections(beanie_db: AsyncIOMotorDatabase) -> None:
    """
    Clear all collections before each test.

    Usage:
        @pytest.mark.usefixtures("clear_collections")
        async def test_something(beanie_db):
            ...
    """
    for model in BEANIE_MODELS:
        await model.find_all().delete()
