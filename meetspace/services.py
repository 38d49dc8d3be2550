"""
Booking admission service.

Decides whether a reservation may be created for a room and time window,
who may cancel a booking, and which rooms are free for a requested window.
Caller identity is plain input: the service never looks up roles itself.
"""

import logging
import uuid
from datetime import date, datetime, time
from typing import Callable, Dict, List, Optional

from meetspace.errors import (
    ConflictError,
    ForbiddenError,
    InactiveError,
    InvalidIntervalError,
    InvalidTitleError,
    MismatchError,
    NotFoundError,
)
from meetspace.intervals import compose_utc, ensure_utc, overlaps, utc_now
from meetspace.models import TITLE_MAX_LENGTH, Booking, BookingStatus, Office, Room
from meetspace.repositories import BookingStore, Directory
from meetspace.schemas import BookingSummary, RoomSchedule, RoomSummary, ScheduledSlot

logger = logging.getLogger(__name__)


def _hhmm(value: datetime) -> str:
    return ensure_utc(value).strftime("%H:%M")


class BookingAdmissionService:
    def __init__(
        self,
        directory: Directory,
        store: BookingStore,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.directory = directory
        self.store = store
        self.clock = clock

    async def create_booking(
        self,
        office_id: uuid.UUID,
        room_id: uuid.UUID,
        booking_date: date,
        start_time: time,
        end_time: time,
        title: str,
        owner_user_id: str,
    ) -> uuid.UUID:
        """
        Admit a new booking or raise the first failing check.

        The checks run in a fixed order: office, room, room/office agreement,
        interval, title, then the atomic conflict check and insert.
        """
        # Step 1: office
        office = await self.directory.get_office(office_id)
        if office is None:
            raise NotFoundError("Office not found.", {"office_id": str(office_id)})
        if not office.is_active:
            raise InactiveError("Office is inactive.", {"office_id": str(office_id)})

        # Step 2: room
        room = await self.directory.get_room(room_id)
        if room is None:
            raise NotFoundError("Room not found.", {"room_id": str(room_id)})
        if not room.is_active:
            raise InactiveError("Room is inactive.", {"room_id": str(room_id)})

        # Step 3: the supplied office and room must agree
        if room.office_id != office_id:
            raise MismatchError(
                "Room does not belong to the specified office.",
                {"office_id": str(office_id), "room_id": str(room_id)},
            )

        # Step 4: interval
        start_utc = compose_utc(booking_date, start_time)
        end_utc = compose_utc(booking_date, end_time)
        if end_utc <= start_utc:
            raise InvalidIntervalError(
                "End time must be after start time.",
                {"start": start_utc.isoformat(), "end": end_utc.isoformat()},
            )

        if not 1 <= len(title) <= TITLE_MAX_LENGTH:
            raise InvalidTitleError(
                f"Title must be 1 to {TITLE_MAX_LENGTH} characters.", {"length": len(title)}
            )

        # Steps 5-6: conflict check and insert as one admission decision
        booking = Booking(
            room_id=room_id,
            owner_user_id=owner_user_id,
            start_utc=start_utc,
            end_utc=end_utc,
            title=title,
            created_at_utc=self.clock(),
            status=BookingStatus.ACTIVE,
        )
        if not await self.store.try_insert_if_no_conflict(booking):
            logger.info(
                "Booking rejected: room %s already booked for [%s, %s)",
                room_id,
                start_utc,
                end_utc,
            )
            raise ConflictError(
                "The room is already booked for the selected time.",
                {
                    "room_id": str(room_id),
                    "start": start_utc.isoformat(),
                    "end": end_utc.isoformat(),
                },
            )

        logger.info("Booking %s created for room %s by %s", booking.id, room_id, owner_user_id)
        return booking.id

    async def cancel_booking(
        self, booking_id: uuid.UUID, requesting_user_id: str, is_elevated: bool
    ) -> None:
        booking = await self.store.get_by_id(booking_id)
        if booking is None:
            raise NotFoundError("Booking not found.", {"booking_id": str(booking_id)})

        if not is_elevated and booking.owner_user_id != requesting_user_id:
            raise ForbiddenError(
                "Not authorized to cancel this booking.", {"booking_id": str(booking_id)}
            )

        # Re-cancelling is a no-op success
        if not booking.cancel():
            logger.debug("Booking %s was already cancelled", booking_id)
            return

        await self.store.update(booking)
        logger.info("Booking %s cancelled by %s", booking_id, requesting_user_id)

    async def list_available_rooms(
        self,
        office_id: uuid.UUID,
        min_capacity: Optional[int] = None,
        booking_date: Optional[date] = None,
        start_time: Optional[time] = None,
        end_time: Optional[time] = None,
    ) -> List[RoomSummary]:
        rooms = await self.directory.list_active_rooms_by_office(office_id, min_capacity)

        # A partial date/time triple means no availability filtering
        if booking_date is not None and start_time is not None and end_time is not None:
            window_start = compose_utc(booking_date, start_time)
            window_end = compose_utc(booking_date, end_time)
            if window_end <= window_start:
                raise InvalidIntervalError(
                    "End time must be after start time.",
                    {"start": window_start.isoformat(), "end": window_end.isoformat()},
                )

            bookings = await self.store.list_by_office_and_date(office_id, booking_date)
            busy = {
                b.room_id
                for b in bookings
                if overlaps(ensure_utc(b.start_utc), ensure_utc(b.end_utc), window_start, window_end)
            }
            rooms = [room for room in rooms if room.id not in busy]

        return [
            RoomSummary(id=r.id, name=r.name, capacity=r.capacity, description=r.description)
            for r in rooms
        ]

    async def list_user_bookings(self, user_id: str) -> List[BookingSummary]:
        bookings = await self.store.list_by_user(user_id)

        rooms: Dict[uuid.UUID, Optional[Room]] = {}
        offices: Dict[uuid.UUID, Optional[Office]] = {}
        summaries = []
        for b in bookings:
            if b.room_id not in rooms:
                rooms[b.room_id] = await self.directory.get_room(b.room_id)
            room = rooms[b.room_id]

            office = None
            if room is not None:
                if room.office_id not in offices:
                    offices[room.office_id] = await self.directory.get_office(room.office_id)
                office = offices[room.office_id]

            start = ensure_utc(b.start_utc)
            summaries.append(
                BookingSummary(
                    id=b.id,
                    room_id=b.room_id,
                    room_name=room.name if room else "",
                    office_name=office.name if office else "",
                    date=start.strftime("%Y-%m-%d"),
                    start_time=_hhmm(start),
                    end_time=_hhmm(b.end_utc),
                    title=b.title,
                    status=b.status,
                    is_cancelled=b.is_cancelled,
                )
            )
        return summaries

    async def get_office_schedule(self, office_id: uuid.UUID, booking_date: date) -> List[RoomSchedule]:
        office = await self.directory.get_office(office_id)
        if office is None:
            raise NotFoundError("Office not found.", {"office_id": str(office_id)})

        rooms = await self.directory.list_active_rooms_by_office(office_id)
        bookings = await self.store.list_by_office_and_date(office_id, booking_date)

        # Key: room_id -> bookings of that room, in start order
        by_room: Dict[uuid.UUID, List[Booking]] = {}
        for b in sorted(bookings, key=lambda b: ensure_utc(b.start_utc)):
            by_room.setdefault(b.room_id, []).append(b)

        return [
            RoomSchedule(
                room_id=room.id,
                room_name=room.name,
                bookings=[
                    ScheduledSlot(
                        booking_id=b.id,
                        start_time=_hhmm(b.start_utc),
                        end_time=_hhmm(b.end_utc),
                        title=b.title,
                        owner_user_id=b.owner_user_id,
                    )
                    for b in by_room.get(room.id, [])
                ],
            )
            for room in rooms
        ]
