"""
Storage contracts used by the admission service, and their SQL implementations.

``Directory`` is the read-only view of offices and rooms. ``BookingStore``
owns bookings; its ``try_insert_if_no_conflict`` is the only way the service
admits a booking, so the conflict check and the insert cannot be composed
incorrectly by a caller.
"""

import asyncio
import logging
import uuid
from abc import ABC, abstractmethod
from collections import defaultdict
from contextlib import asynccontextmanager
from datetime import date, datetime
from typing import AsyncIterator, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from meetspace.intervals import day_bounds_utc
from meetspace.models import Booking, BookingStatus, Office, ResourceStatus, Room

logger = logging.getLogger(__name__)


class Directory(ABC):
    @abstractmethod
    async def get_office(self, office_id: uuid.UUID) -> Optional[Office]:
        ...

    @abstractmethod
    async def get_room(self, room_id: uuid.UUID) -> Optional[Room]:
        ...

    @abstractmethod
    async def list_active_rooms_by_office(
        self, office_id: uuid.UUID, min_capacity: Optional[int] = None
    ) -> List[Room]:
        """Active rooms of the office ordered by name."""


class BookingStore(ABC):
    @abstractmethod
    async def has_conflicting(
        self, room_id: uuid.UUID, start_utc: datetime, end_utc: datetime
    ) -> bool:
        """True if an active booking on the room overlaps [start_utc, end_utc)."""

    @abstractmethod
    async def insert(self, booking: Booking) -> None:
        ...

    @abstractmethod
    async def try_insert_if_no_conflict(self, booking: Booking) -> bool:
        """
        Atomically check for an overlapping active booking and insert.

        Returns False, persisting nothing, when the slot is already taken,
        including when a concurrent writer won the race at the storage level.
        """

    @abstractmethod
    async def get_by_id(self, booking_id: uuid.UUID) -> Optional[Booking]:
        ...

    @abstractmethod
    async def update(self, booking: Booking) -> None:
        ...

    @abstractmethod
    async def list_by_user(self, user_id: str) -> List[Booking]:
        """All bookings of the user, cancelled included, newest start first."""

    @abstractmethod
    async def list_by_office_and_date(self, office_id: uuid.UUID, day: date) -> List[Booking]:
        """Active bookings in any room of the office starting on ``day`` (UTC)."""


class RoomLocks:
    """Process-local mutual exclusion per room id."""

    def __init__(self) -> None:
        self._locks: defaultdict[uuid.UUID, asyncio.Lock] = defaultdict(asyncio.Lock)

    @asynccontextmanager
    async def hold(self, room_id: uuid.UUID) -> AsyncIterator[None]:
        async with self._locks[room_id]:
            yield


# Shared by every SqlBookingStore in the process; sessions are per request.
room_locks = RoomLocks()


class SqlDirectory(Directory):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_office(self, office_id: uuid.UUID) -> Optional[Office]:
        return await self.session.get(Office, office_id)

    async def get_room(self, room_id: uuid.UUID) -> Optional[Room]:
        return await self.session.get(Room, room_id)

    async def list_active_rooms_by_office(
        self, office_id: uuid.UUID, min_capacity: Optional[int] = None
    ) -> List[Room]:
        statement = select(Room).where(
            Room.office_id == office_id, Room.status == ResourceStatus.ACTIVE
        )
        if min_capacity is not None:
            statement = statement.where(Room.capacity >= min_capacity)
        result = await self.session.execute(statement.order_by(Room.name))
        return list(result.scalars().all())


class SqlBookingStore(BookingStore):
    def __init__(self, session: AsyncSession, locks: RoomLocks = room_locks):
        self.session = session
        self.locks = locks

    async def has_conflicting(
        self, room_id: uuid.UUID, start_utc: datetime, end_utc: datetime
    ) -> bool:
        statement = (
            select(Booking.id)
            .where(
                Booking.room_id == room_id,
                Booking.status == BookingStatus.ACTIVE,
                Booking.start_utc < end_utc,
                start_utc < Booking.end_utc,
            )
            .limit(1)
        )
        result = await self.session.execute(statement)
        return result.first() is not None

    async def insert(self, booking: Booking) -> None:
        self.session.add(booking)
        await self.session.commit()
        await self.session.refresh(booking)

    async def try_insert_if_no_conflict(self, booking: Booking) -> bool:
        async with self.locks.hold(booking.room_id):
            try:
                # Serializes admissions for the room across processes (no-op on SQLite)
                await self.session.execute(
                    select(Room.id).where(Room.id == booking.room_id).with_for_update()
                )
                if await self.has_conflicting(booking.room_id, booking.start_utc, booking.end_utc):
                    await self.session.rollback()
                    return False
                await self.insert(booking)
            except IntegrityError:
                # This catches the exclusion constraint / trigger from the database
                await self.session.rollback()
                logger.warning(
                    "Storage rejected overlapping booking for room %s [%s, %s)",
                    booking.room_id,
                    booking.start_utc,
                    booking.end_utc,
                )
                return False
        return True

    async def get_by_id(self, booking_id: uuid.UUID) -> Optional[Booking]:
        return await self.session.get(Booking, booking_id)

    async def update(self, booking: Booking) -> None:
        self.session.add(booking)
        await self.session.commit()

    async def list_by_user(self, user_id: str) -> List[Booking]:
        statement = (
            select(Booking)
            .where(Booking.owner_user_id == user_id)
            .order_by(Booking.start_utc.desc())
        )
        result = await self.session.execute(statement)
        return list(result.scalars().all())

    async def list_by_office_and_date(self, office_id: uuid.UUID, day: date) -> List[Booking]:
        day_start, day_end = day_bounds_utc(day)
        statement = (
            select(Booking)
            .join(Room, Room.id == Booking.room_id)
            .where(
                Room.office_id == office_id,
                Booking.status == BookingStatus.ACTIVE,
                Booking.start_utc >= day_start,
                Booking.start_utc < day_end,
            )
            .order_by(Booking.start_utc)
        )
        result = await self.session.execute(statement)
        return list(result.scalars().all())
