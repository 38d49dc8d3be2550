import logging

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from meetspace.models import Office, Room

logger = logging.getLogger(__name__)

DEMO_ROOMS = [
    ("Focus Room", 2, "Quiet room for calls"),
    ("Huddle", 4, "Screen and whiteboard"),
    ("Boardroom", 12, "Video conferencing"),
]


async def seed_demo_data(session: AsyncSession) -> bool:
    """Insert a demo office with rooms unless offices already exist."""
    result = await session.execute(select(Office.id).limit(1))
    if result.first() is not None:
        logger.info("Demo seed skipped: offices already exist.")
        return False

    office = Office(name="Headquarters", address="1 Main Street")
    session.add(office)
    for name, capacity, description in DEMO_ROOMS:
        session.add(Room(office_id=office.id, name=name, capacity=capacity, description=description))
    await session.commit()

    logger.info("Demo office %s seeded with %d rooms.", office.id, len(DEMO_ROOMS))
    return True
