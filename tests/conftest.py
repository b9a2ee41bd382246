import os

# settings are read at import time, so the env has to be in place before bazaar is imported
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["JWT_ALGO"] = "HS256"
os.environ["PLATFORM_ACCOUNT_ID"] = "0192b7c4-6f1e-7a3b-9c2d-4e5f6a7b8c9d"
os.environ["ENV"] = "dev"

import pytest
from asgi_lifespan import LifespanManager
from httpx import ASGITransport, AsyncClient
from sqlmodel import SQLModel

from bazaar.db.connection import async_engine, async_session
from bazaar.main import app
from tests.seed_data import seed_marketplace


@pytest.fixture(autouse=True)
async def fresh_db():
    async with async_engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)
        await conn.run_sync(SQLModel.metadata.create_all)
    yield
    # in-memory database goes away with the pooled connection
    await async_engine.dispose()


@pytest.fixture
async def db_session():

    async with async_session() as session:
        yield session


@pytest.fixture
async def market():
    async with async_session() as session:
        data = await seed_marketplace(session)
        await session.commit()
    return data


@pytest.fixture
async def ac_client():
    async with LifespanManager(app):
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            yield ac
