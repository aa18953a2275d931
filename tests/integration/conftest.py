"""SQLite-backed fixtures: a seeded sync session and a seeded async session."""

from collections.abc import AsyncGenerator, Generator

import pytest
from school import make_students
from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import Session, sessionmaker

from multirepo.database import Base

TEST_DATABASE_URL = "sqlite://"
TEST_ASYNC_DATABASE_URL = "sqlite+aiosqlite://"

engine = create_engine(TEST_DATABASE_URL, echo=False)
SessionLocal = sessionmaker(engine, expire_on_commit=False)

async_engine = create_async_engine(TEST_ASYNC_DATABASE_URL, echo=False)
AsyncSessionLocal = async_sessionmaker(async_engine, expire_on_commit=False)


@pytest.fixture
def db_session() -> Generator[Session]:
    Base.metadata.create_all(engine)
    with SessionLocal() as session:
        session.add_all(make_students())
        session.commit()
        yield session
    Base.metadata.drop_all(engine)


@pytest.fixture
async def async_session() -> AsyncGenerator[AsyncSession]:
    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async with AsyncSessionLocal() as session:
        session.add_all(make_students())
        await session.commit()
        yield session
    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
