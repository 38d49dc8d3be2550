import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import DDL, Column, DateTime, Index, event, func, text
from sqlalchemy import Enum as SAEnum
from sqlalchemy.dialects.postgresql import ExcludeConstraint
from sqlmodel import Field, SQLModel

NO_OVERLAP_CONSTRAINT = "bookings_no_overlap_per_room"
TITLE_MAX_LENGTH = 200


class ResourceStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class BookingStatus(str, Enum):
    ACTIVE = "active"
    CANCELLED = "cancelled"


def _status_column(enum_cls: type[Enum], default: Enum) -> Column:
    return Column(
        SAEnum(
            enum_cls,
            native_enum=False,
            length=16,
            values_callable=lambda members: [m.value for m in members],
        ),
        nullable=False,
        default=default,
    )


class Office(SQLModel, table=True):
    __tablename__ = "offices"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    name: str = Field(max_length=100)
    address: str = Field(default="", max_length=250)
    status: ResourceStatus = Field(
        default=ResourceStatus.ACTIVE,
        sa_column=_status_column(ResourceStatus, ResourceStatus.ACTIVE),
    )

    @property
    def is_active(self) -> bool:
        return self.status == ResourceStatus.ACTIVE


class Room(SQLModel, table=True):
    __tablename__ = "rooms"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    office_id: uuid.UUID = Field(foreign_key="offices.id", index=True)
    name: str = Field(max_length=100)
    capacity: int = Field(default=1, ge=1)
    description: str = Field(default="", max_length=500)
    status: ResourceStatus = Field(
        default=ResourceStatus.ACTIVE,
        sa_column=_status_column(ResourceStatus, ResourceStatus.ACTIVE),
    )

    @property
    def is_active(self) -> bool:
        return self.status == ResourceStatus.ACTIVE


class Booking(SQLModel, table=True):
    __tablename__ = "bookings"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    room_id: uuid.UUID = Field(foreign_key="rooms.id", index=True)
    owner_user_id: str = Field(index=True, max_length=450)
    start_utc: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    end_utc: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    title: str = Field(max_length=TITLE_MAX_LENGTH)
    created_at_utc: Optional[datetime] = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=False)
    )
    status: BookingStatus = Field(
        default=BookingStatus.ACTIVE,
        sa_column=_status_column(BookingStatus, BookingStatus.ACTIVE),
    )

    @property
    def is_cancelled(self) -> bool:
        return self.status == BookingStatus.CANCELLED

    def cancel(self) -> bool:
        """Move to CANCELLED. Returns False when it already was."""
        if self.status == BookingStatus.CANCELLED:
            return False
        self.status = BookingStatus.CANCELLED
        return True


_bookings = Booking.__table__

Index("ix_bookings_room_start_end", _bookings.c.room_id, _bookings.c.start_utc, _bookings.c.end_utc)

# CRITICAL: Database-level protection against double booking.
# PostgreSQL enforces it with an exclusion constraint over the active rows.
_bookings.append_constraint(
    ExcludeConstraint(
        (_bookings.c.room_id, "="),
        (func.tstzrange(_bookings.c.start_utc, _bookings.c.end_utc), "&&"),
        name=NO_OVERLAP_CONSTRAINT,
        using="gist",
        where=text("status = 'active'"),
    ).ddl_if(dialect="postgresql")
)

event.listen(
    SQLModel.metadata,
    "before_create",
    DDL("CREATE EXTENSION IF NOT EXISTS btree_gist").execute_if(dialect="postgresql"),
)

# SQLite has no exclusion constraints; a trigger rejects the losing writer instead.
event.listen(
    _bookings,
    "after_create",
    DDL(
        f"CREATE TRIGGER IF NOT EXISTS {NO_OVERLAP_CONSTRAINT} "
        "BEFORE INSERT ON bookings "
        "WHEN NEW.status = 'active' AND EXISTS ("
        "SELECT 1 FROM bookings b "
        "WHERE b.room_id = NEW.room_id AND b.status = 'active' "
        "AND b.start_utc < NEW.end_utc AND NEW.start_utc < b.end_utc) "
        f"BEGIN SELECT RAISE(ABORT, '{NO_OVERLAP_CONSTRAINT}'); END"
    ).execute_if(dialect="sqlite"),
)
