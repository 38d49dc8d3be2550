import os

# Must be set before meetspace.config is imported
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"

from dataclasses import dataclass
from datetime import datetime, timezone
import uuid

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from meetspace.database import get_session, init_db
from meetspace.main import app
from meetspace.memory import InMemoryBookingStore, InMemoryDirectory
from meetspace.models import Office, ResourceStatus, Room
from meetspace.services import BookingAdmissionService

FIXED_NOW = datetime(2026, 5, 20, 8, 0, tzinfo=timezone.utc)


@dataclass
class Layout:
    """Two active offices; O1 has R1 (capacity 4) and R2 (capacity 10)."""

    office_id: uuid.UUID
    room_id: uuid.UUID
    big_room_id: uuid.UUID
    other_office_id: uuid.UUID
    other_room_id: uuid.UUID


def build_layout() -> tuple[list[Office], list[Room], Layout]:
    o1 = Office(name="HQ")
    o2 = Office(name="Branch")
    r1 = Room(office_id=o1.id, name="R1", capacity=4, description="Small")
    r2 = Room(office_id=o1.id, name="R2", capacity=10, description="Large")
    r3 = Room(office_id=o2.id, name="B1", capacity=6)
    layout = Layout(o1.id, r1.id, r2.id, o2.id, r3.id)
    return [o1, o2], [r1, r2, r3], layout


@pytest.fixture
def directory() -> InMemoryDirectory:
    return InMemoryDirectory()


@pytest.fixture
def store(directory: InMemoryDirectory) -> InMemoryBookingStore:
    return InMemoryBookingStore(directory)


@pytest.fixture
def service(directory, store) -> BookingAdmissionService:
    return BookingAdmissionService(directory, store, clock=lambda: FIXED_NOW)


@pytest.fixture
def layout(directory: InMemoryDirectory) -> Layout:
    offices, rooms, result = build_layout()
    for office in offices:
        directory.add_office(office)
    for room in rooms:
        directory.add_room(room)
    return result


@pytest_asyncio.fixture
async def sql_engine(tmp_path):
    # File database with one connection per session, so sessions really run concurrently
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'bookings.db'}", poolclass=NullPool)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(sql_engine):
    return async_sessionmaker(sql_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def sql_layout(session_factory) -> Layout:
    offices, rooms, result = build_layout()
    async with session_factory() as session:
        session.add_all(offices)
        await session.flush()
        session.add_all(rooms)
        await session.commit()
    return result


@pytest_asyncio.fixture
async def client(session_factory):
    async def override_get_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


async def deactivate(session_factory, model, entity_id):
    async with session_factory() as session:
        entity = await session.get(model, entity_id)
        entity.status = ResourceStatus.INACTIVE
        await session.commit()
