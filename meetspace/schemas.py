import uuid
from datetime import date, time
from typing import List

from pydantic import BaseModel, Field

from meetspace.models import TITLE_MAX_LENGTH, BookingStatus


# Pydantic Schemas for Request/Response
class BookingCreate(BaseModel):
    office_id: uuid.UUID
    room_id: uuid.UUID
    booking_date: date
    start_time: time
    end_time: time
    title: str = Field(min_length=1, max_length=TITLE_MAX_LENGTH)


class BookingCreated(BaseModel):
    id: uuid.UUID


class BookingSummary(BaseModel):
    id: uuid.UUID
    room_id: uuid.UUID
    room_name: str
    office_name: str
    date: str  # YYYY-MM-DD
    start_time: str  # HH:MM
    end_time: str  # HH:MM
    title: str
    status: BookingStatus
    is_cancelled: bool


class RoomSummary(BaseModel):
    id: uuid.UUID
    name: str
    capacity: int
    description: str


class ScheduledSlot(BaseModel):
    booking_id: uuid.UUID
    start_time: str
    end_time: str
    title: str
    owner_user_id: str


class RoomSchedule(BaseModel):
    room_id: uuid.UUID
    room_name: str
    bookings: List[ScheduledSlot]
