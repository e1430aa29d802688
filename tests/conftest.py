"""
Pytest fixtures for the harvest registry tests.
Uses SQLite in-memory (aiosqlite) with a fresh schema per test.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from harvest.config import settings
from harvest.database import Base, get_db
from harvest.main import app
from harvest.models.cooperative import Cooperative

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"


def make_token(subject, role: str = "cooperative") -> str:
    return jwt.encode(
        {"sub": str(subject), "role": role},
        settings.SECRET_KEY,
        algorithm=settings.ALGORITHM,
    )


@pytest_asyncio.fixture
async def engine():
    eng = create_async_engine(
        TEST_DB_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest_asyncio.fixture
async def db(engine):
    factory = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
    async with factory() as session:
        yield session


async def _add_cooperative(db: AsyncSession, name: str, registration: str, approved: bool = True) -> Cooperative:
    cooperative = Cooperative(
        name=name,
        registration_number=registration,
        region="Centre",
        is_approved=approved,
    )
    db.add(cooperative)
    await db.commit()
    await db.refresh(cooperative)
    # Detached so a rollback inside a test never expires it.
    db.expunge(cooperative)
    return cooperative


@pytest_asyncio.fixture
async def cooperative(db):
    return await _add_cooperative(db, "Mfoundi Growers", "COOP-001")


@pytest_asyncio.fixture
async def other_cooperative(db):
    return await _add_cooperative(db, "Wouri Planters", "COOP-002")


@pytest_asyncio.fixture
async def pending_cooperative(db):
    return await _add_cooperative(db, "Noun Valley", "COOP-003", approved=False)


@pytest_asyncio.fixture
async def auth_headers(cooperative):
    return {"Authorization": f"Bearer {make_token(cooperative.id)}"}


@pytest_asyncio.fixture
async def client(db):
    async def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
