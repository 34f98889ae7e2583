"""
Test configuration and fixtures.

Provides:
- A throwaway SQLite database per test (file based, so concurrent
  requests really run on separate connections)
- HTTPX AsyncClient bound to the FastAPI app with get_db overridden
- A seeded campus: two schools, their departments, staff and numbers
- Row factories and token minting live in factories.py
"""

import os
from dataclasses import dataclass
from typing import AsyncGenerator

# Settings are read at import time
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-campus-sim-0123456789")
os.environ.setdefault("ENVIRONMENT", "development")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from campus_sim.core.database import get_db
from campus_sim.main import app
from campus_sim.models import Base, GlobalRole, Organization, OrgKind, OrgRole, PhoneNumber, User
from factories import add_membership, make_number, make_org, make_user


# =============================================================================
# Database
# =============================================================================

@pytest.fixture
async def engine(tmp_path):
    test_engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'campus_sim_test.db'}",
        connect_args={"timeout": 30},
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


# =============================================================================
# Seeded campus
# =============================================================================

@dataclass
class Campus:
    north: Organization
    north_cs: Organization
    north_math: Organization
    south: Organization
    south_art: Organization
    super_admin: User
    north_admin: User
    marketer: User
    south_admin: User
    north_number: PhoneNumber
    north_cs_number: PhoneNumber
    south_number: PhoneNumber


@pytest.fixture
async def campus(db: AsyncSession) -> Campus:
    """
    North University (CS, Math) and South College (Art).

    north_admin administers North; marketer sells for North/CS; south_admin
    administers South.
    """
    north = await make_org(db, "North University", OrgKind.SCHOOL)
    north_cs = await make_org(db, "Computer Science", OrgKind.DEPARTMENT, north)
    north_math = await make_org(db, "Mathematics", OrgKind.DEPARTMENT, north)
    south = await make_org(db, "South College", OrgKind.SCHOOL)
    south_art = await make_org(db, "Fine Art", OrgKind.DEPARTMENT, south)

    super_admin = await make_user(db, "root", GlobalRole.SUPER_ADMIN)
    north_admin = await make_user(db, "nadmin", GlobalRole.SCHOOL_ADMIN)
    marketer = await make_user(db, "seller", GlobalRole.MARKETER)
    south_admin = await make_user(db, "sadmin", GlobalRole.SCHOOL_ADMIN)

    await add_membership(db, north_admin, north, OrgRole.SCHOOL_ADMIN)
    await add_membership(db, marketer, north, OrgRole.MARKETER)
    await add_membership(db, marketer, north_cs, OrgRole.MARKETER)
    await add_membership(db, south_admin, south, OrgRole.SCHOOL_ADMIN)

    north_number = await make_number(db, "13800138001", school=north)
    north_cs_number = await make_number(db, "13800138002", school=north, department=north_cs)
    south_number = await make_number(db, "13900139003", school=south, department=south_art)

    await db.commit()
    return Campus(
        north=north,
        north_cs=north_cs,
        north_math=north_math,
        south=south,
        south_art=south_art,
        super_admin=super_admin,
        north_admin=north_admin,
        marketer=marketer,
        south_admin=south_admin,
        north_number=north_number,
        north_cs_number=north_cs_number,
        south_number=south_number,
    )
