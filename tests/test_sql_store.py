"""SQL store behaviour on SQLite, including the storage-level overlap guard."""

import asyncio
import uuid
from datetime import date, datetime, time, timezone

import pytest
from conftest import FIXED_NOW, deactivate
from sqlalchemy.exc import IntegrityError

from meetspace.errors import ConflictError, InactiveError
from meetspace.models import Booking, BookingStatus, Room
from meetspace.repositories import RoomLocks, SqlBookingStore, SqlDirectory
from meetspace.seed import seed_demo_data
from meetspace.services import BookingAdmissionService

DAY = date(2026, 6, 1)


def at(hour: int, minute: int = 0) -> datetime:
    return datetime(2026, 6, 1, hour, minute, tzinfo=timezone.utc)


def new_booking(room_id, start, end, owner="u1"):
    return Booking(
        room_id=room_id,
        owner_user_id=owner,
        start_utc=start,
        end_utc=end,
        title="Meeting",
        created_at_utc=FIXED_NOW,
    )


async def admit(session_factory, layout, start, end, user, locks=None):
    async with session_factory() as session:
        store = SqlBookingStore(session, locks) if locks else SqlBookingStore(session)
        service = BookingAdmissionService(SqlDirectory(session), store, clock=lambda: FIXED_NOW)
        return await service.create_booking(
            layout.office_id, layout.room_id, DAY, start, end, "Meeting", user
        )


@pytest.mark.asyncio
async def test_has_conflicting_uses_half_open_intervals(session_factory, sql_layout):
    async with session_factory() as session:
        store = SqlBookingStore(session)
        await store.insert(new_booking(sql_layout.room_id, at(10), at(11)))

        assert await store.has_conflicting(sql_layout.room_id, at(10, 30), at(11, 30))
        assert not await store.has_conflicting(sql_layout.room_id, at(11), at(12))
        assert not await store.has_conflicting(sql_layout.room_id, at(9), at(10))
        assert not await store.has_conflicting(sql_layout.big_room_id, at(10), at(11))


@pytest.mark.asyncio
async def test_cancelled_bookings_do_not_conflict(session_factory, sql_layout):
    async with session_factory() as session:
        store = SqlBookingStore(session)
        booking = new_booking(sql_layout.room_id, at(10), at(11))
        await store.insert(booking)
        booking.cancel()
        await store.update(booking)

        assert not await store.has_conflicting(sql_layout.room_id, at(10), at(11))
        assert await store.try_insert_if_no_conflict(new_booking(sql_layout.room_id, at(10), at(11)))


@pytest.mark.asyncio
async def test_database_rejects_overlapping_insert(session_factory, sql_layout):
    async with session_factory() as session:
        session.add(new_booking(sql_layout.room_id, at(10), at(11)))
        await session.commit()

    async with session_factory() as session:
        session.add(new_booking(sql_layout.room_id, at(10, 30), at(11, 30), owner="u2"))
        with pytest.raises(IntegrityError):
            await session.commit()


@pytest.mark.asyncio
async def test_storage_rejection_is_reported_as_lost_admission(session_factory, sql_layout, monkeypatch):
    async with session_factory() as session:
        await SqlBookingStore(session).insert(new_booking(sql_layout.room_id, at(10), at(11)))

    async with session_factory() as session:
        store = SqlBookingStore(session)

        async def stale_check(*args):
            return False

        # Simulates a writer whose check ran before the other booking committed
        monkeypatch.setattr(store, "has_conflicting", stale_check)

        assert not await store.try_insert_if_no_conflict(
            new_booking(sql_layout.room_id, at(10, 15), at(10, 45), owner="u2")
        )

    async with session_factory() as session:
        assert len(await SqlBookingStore(session).list_by_user("u2")) == 0


@pytest.mark.asyncio
async def test_concurrent_admissions_admit_exactly_one(session_factory, sql_layout):
    attempts = [
        admit(session_factory, sql_layout, time(9, i), time(10, i), f"u{i}") for i in range(5)
    ]

    results = await asyncio.gather(*attempts, return_exceptions=True)

    assert sum(isinstance(r, uuid.UUID) for r in results) == 1
    assert sum(isinstance(r, ConflictError) for r in results) == 4


@pytest.mark.asyncio
async def test_storage_guard_holds_without_the_process_lock(session_factory, sql_layout):
    # Each writer gets its own lock registry, as separate processes would
    attempts = [
        admit(session_factory, sql_layout, time(9, i), time(10, i), f"u{i}", locks=RoomLocks())
        for i in range(5)
    ]

    results = await asyncio.gather(*attempts, return_exceptions=True)

    assert sum(isinstance(r, uuid.UUID) for r in results) == 1
    assert sum(isinstance(r, ConflictError) for r in results) == 4


@pytest.mark.asyncio
async def test_lists_by_user_and_by_office_date(session_factory, sql_layout):
    async with session_factory() as session:
        store = SqlBookingStore(session)
        morning = new_booking(sql_layout.room_id, at(9), at(10))
        afternoon = new_booking(sql_layout.big_room_id, at(14), at(15))
        elsewhere = new_booking(sql_layout.other_room_id, at(8), at(9))
        next_day = new_booking(
            sql_layout.room_id,
            datetime(2026, 6, 2, 9, tzinfo=timezone.utc),
            datetime(2026, 6, 2, 10, tzinfo=timezone.utc),
        )
        for booking in (morning, afternoon, elsewhere, next_day):
            await store.insert(booking)
        afternoon.cancel()
        await store.update(afternoon)

        mine = await store.list_by_user("u1")
        assert [b.id for b in mine] == [next_day.id, afternoon.id, morning.id, elsewhere.id]

        on_day = await store.list_by_office_and_date(sql_layout.office_id, DAY)
        assert [b.id for b in on_day] == [morning.id]


@pytest.mark.asyncio
async def test_directory_lists_active_rooms(session_factory, sql_layout):
    await deactivate(session_factory, Room, sql_layout.big_room_id)

    async with session_factory() as session:
        directory = SqlDirectory(session)
        rooms = await directory.list_active_rooms_by_office(sql_layout.office_id)
        assert [r.id for r in rooms] == [sql_layout.room_id]
        assert await directory.list_active_rooms_by_office(sql_layout.office_id, min_capacity=5) == []


@pytest.mark.asyncio
async def test_inactive_room_is_rejected_from_sql(session_factory, sql_layout):
    await deactivate(session_factory, Room, sql_layout.room_id)

    with pytest.raises(InactiveError):
        await admit(session_factory, sql_layout, time(9), time(10), "u1")


@pytest.mark.asyncio
async def test_cancellation_round_trip(session_factory, sql_layout):
    booking_id = await admit(session_factory, sql_layout, time(9), time(10), "u1")

    async with session_factory() as session:
        service = BookingAdmissionService(SqlDirectory(session), SqlBookingStore(session))
        await service.cancel_booking(booking_id, "u1", is_elevated=False)

    async with session_factory() as session:
        stored = await SqlBookingStore(session).get_by_id(booking_id)
        assert stored.status == BookingStatus.CANCELLED

    await admit(session_factory, sql_layout, time(9), time(10), "u2")


@pytest.mark.asyncio
async def test_seed_runs_once(session_factory):
    async with session_factory() as session:
        assert await seed_demo_data(session)
    async with session_factory() as session:
        assert not await seed_demo_data(session)
