import logging
import uuid
from datetime import date, time
from typing import List, Optional

from fastapi import Depends, FastAPI, Query, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from meetspace.auth import CallerIdentity, get_caller
from meetspace.config import CORS_ORIGINS, SEED_DEMO_DATA, configure_logging
from meetspace.database import async_session, get_session, init_db
from meetspace.errors import BookingError
from meetspace.repositories import SqlBookingStore, SqlDirectory
from meetspace.schemas import BookingCreate, BookingCreated, BookingSummary, RoomSchedule, RoomSummary
from meetspace.seed import seed_demo_data
from meetspace.services import BookingAdmissionService

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="Meeting Room Booking System")


def get_booking_service(session: AsyncSession = Depends(get_session)) -> BookingAdmissionService:
    return BookingAdmissionService(SqlDirectory(session), SqlBookingStore(session))


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
    http_exc = exc.to_http_exception()
    return JSONResponse(status_code=http_exc.status_code, content={"detail": http_exc.detail})


@app.on_event("startup")
async def on_startup():
    await init_db()
    logger.info("Database schema ready")
    if SEED_DEMO_DATA:
        async with async_session() as session:
            await seed_demo_data(session)


@app.get("/health")
async def health():
    return {"status": "ok"}


# --- GET /api/bookings: the caller's bookings, cancelled included ---
@app.get("/api/bookings", response_model=List[BookingSummary])
async def list_my_bookings(
    caller: CallerIdentity = Depends(get_caller),
    service: BookingAdmissionService = Depends(get_booking_service),
):
    return await service.list_user_bookings(caller.user_id)


# --- POST /api/bookings ---
@app.post("/api/bookings", status_code=status.HTTP_201_CREATED, response_model=BookingCreated)
async def create_booking(
    booking_data: BookingCreate,
    caller: CallerIdentity = Depends(get_caller),
    service: BookingAdmissionService = Depends(get_booking_service),
):
    booking_id = await service.create_booking(
        office_id=booking_data.office_id,
        room_id=booking_data.room_id,
        booking_date=booking_data.booking_date,
        start_time=booking_data.start_time,
        end_time=booking_data.end_time,
        title=booking_data.title,
        owner_user_id=caller.user_id,
    )
    return BookingCreated(id=booking_id)


# --- DELETE /api/bookings/{booking_id}: owner, manager or admin ---
@app.delete("/api/bookings/{booking_id}", status_code=status.HTTP_204_NO_CONTENT)
async def cancel_booking(
    booking_id: uuid.UUID,
    caller: CallerIdentity = Depends(get_caller),
    service: BookingAdmissionService = Depends(get_booking_service),
):
    await service.cancel_booking(booking_id, caller.user_id, caller.is_elevated)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# --- GET /api/offices/{office_id}/rooms ---
@app.get("/api/offices/{office_id}/rooms", response_model=List[RoomSummary])
async def list_rooms(
    office_id: uuid.UUID,
    min_capacity: Optional[int] = Query(default=None, ge=1),
    booking_date: Optional[date] = None,
    start_time: Optional[time] = None,
    end_time: Optional[time] = None,
    caller: CallerIdentity = Depends(get_caller),
    service: BookingAdmissionService = Depends(get_booking_service),
):
    return await service.list_available_rooms(
        office_id,
        min_capacity=min_capacity,
        booking_date=booking_date,
        start_time=start_time,
        end_time=end_time,
    )


# --- GET /api/offices/{office_id}/schedule ---
@app.get("/api/offices/{office_id}/schedule", response_model=List[RoomSchedule])
async def get_schedule(
    office_id: uuid.UUID,
    target_date: date,
    caller: CallerIdentity = Depends(get_caller),
    service: BookingAdmissionService = Depends(get_booking_service),
):
    return await service.get_office_schedule(office_id, target_date)


app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
