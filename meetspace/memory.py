"""In-memory Directory and BookingStore, for tests and local experiments."""

import asyncio
import uuid
from datetime import date, datetime
from typing import Dict, List, Optional

from meetspace.intervals import day_bounds_utc, overlaps
from meetspace.models import Booking, BookingStatus, Office, Room
from meetspace.repositories import BookingStore, Directory


class InMemoryDirectory(Directory):
    def __init__(self) -> None:
        self.offices: Dict[uuid.UUID, Office] = {}
        self.rooms: Dict[uuid.UUID, Room] = {}

    def add_office(self, office: Office) -> Office:
        self.offices[office.id] = office
        return office

    def add_room(self, room: Room) -> Room:
        self.rooms[room.id] = room
        return room

    async def get_office(self, office_id: uuid.UUID) -> Optional[Office]:
        return self.offices.get(office_id)

    async def get_room(self, room_id: uuid.UUID) -> Optional[Room]:
        return self.rooms.get(room_id)

    async def list_active_rooms_by_office(
        self, office_id: uuid.UUID, min_capacity: Optional[int] = None
    ) -> List[Room]:
        rooms = [
            room
            for room in self.rooms.values()
            if room.office_id == office_id
            and room.is_active
            and (min_capacity is None or room.capacity >= min_capacity)
        ]
        return sorted(rooms, key=lambda room: room.name)


class InMemoryBookingStore(BookingStore):
    def __init__(self, directory: InMemoryDirectory):
        # Needed to resolve a room's office for list_by_office_and_date
        self.directory = directory
        self.bookings: Dict[uuid.UUID, Booking] = {}
        self._admission_lock = asyncio.Lock()

    async def has_conflicting(
        self, room_id: uuid.UUID, start_utc: datetime, end_utc: datetime
    ) -> bool:
        return any(
            booking.room_id == room_id
            and booking.status == BookingStatus.ACTIVE
            and overlaps(booking.start_utc, booking.end_utc, start_utc, end_utc)
            for booking in self.bookings.values()
        )

    async def insert(self, booking: Booking) -> None:
        self.bookings[booking.id] = booking

    async def try_insert_if_no_conflict(self, booking: Booking) -> bool:
        async with self._admission_lock:
            if await self.has_conflicting(booking.room_id, booking.start_utc, booking.end_utc):
                return False
            # Yield inside the critical section, as a real store would on I/O
            await asyncio.sleep(0)
            await self.insert(booking)
        return True

    async def get_by_id(self, booking_id: uuid.UUID) -> Optional[Booking]:
        return self.bookings.get(booking_id)

    async def update(self, booking: Booking) -> None:
        self.bookings[booking.id] = booking

    async def list_by_user(self, user_id: str) -> List[Booking]:
        owned = [b for b in self.bookings.values() if b.owner_user_id == user_id]
        return sorted(owned, key=lambda b: b.start_utc, reverse=True)

    async def list_by_office_and_date(self, office_id: uuid.UUID, day: date) -> List[Booking]:
        day_start, day_end = day_bounds_utc(day)
        room_ids = {
            room.id for room in self.directory.rooms.values() if room.office_id == office_id
        }
        found = [
            b
            for b in self.bookings.values()
            if b.room_id in room_ids
            and b.status == BookingStatus.ACTIVE
            and day_start <= b.start_utc < day_end
        ]
        return sorted(found, key=lambda b: b.start_utc)
