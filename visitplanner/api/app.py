"""FastAPI application factory for the public booking API."""

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..adapters.entitlements import StaticEntitlements
from ..adapters.sqlite_store import SQLiteVisitStore
from ..config import AppConfig
from ..domain.exceptions import VisitPlannerError
from ..domain.models import BookingRequest
from ..domain.slot_planner import SlotPlanner
from ..services.booking_service import (
    GENERIC_STORE_MESSAGE,
    BookingOutcome,
    BookingResult,
    BookingService,
)
from ..services.schedule_service import ScheduleService
from ..services.store import VisitStore

logger = logging.getLogger(__name__)

STATUS_BY_OUTCOME = {
    BookingOutcome.ACCEPTED: 200,
    BookingOutcome.INVALID_INPUT: 400,
    BookingOutcome.NOT_FOUND: 404,
    BookingOutcome.NEEDS_REPLACE_CONFIRMATION: 409,
    BookingOutcome.SLOT_FULL: 409,
    BookingOutcome.STORE_ERROR: 500,
}


# --- Request/Response Models ---


class CreateBookingPayload(BaseModel):
    """Body of POST /api/bookings. Field types are checked by the arbiter."""

    slotId: Any = None
    visitorName: Any = None
    numberOfPeople: Any = None
    replaceExisting: bool | None = None


class CancelBookingPayload(BaseModel):
    """Body of DELETE /api/bookings."""

    slotId: Any = None
    visitorName: Any = None


class PublicSlot(BaseModel):
    id: str
    date: str
    start_time: str
    duration_minutes: int
    max_people: int
    total_people: int
    remaining_spots: int


class PublicScheduleView(BaseModel):
    id: str
    name: str | None = None
    start_date: str
    end_date: str
    custom_message: str | None = None
    slots: list[PublicSlot]


def booking_response(result: BookingResult) -> JSONResponse:
    """Render a booking result with the status and body visitors' pages expect."""
    status = STATUS_BY_OUTCOME[result.outcome]

    if result.ok:
        return JSONResponse({"ok": True}, status_code=status)

    body: dict[str, Any] = {"message": result.message}
    if result.code:
        body = {"code": result.code, **body}
    return JSONResponse(body, status_code=status)


def create_app(store: VisitStore | None = None, config: AppConfig | None = None) -> FastAPI:
    """Create FastAPI app with optional store and config injection.

    Args:
        store: Record store. If None, opens the configured SQLite database.
        config: Application configuration. If None, defaults are used.

    Returns:
        Configured FastAPI application.
    """
    config = config or AppConfig()
    if store is None:
        store = SQLiteVisitStore(config.database_path)
        store.init_schema()

    app = FastAPI(title="Visit Planner API", version="0.1.0")

    app.state.store = store
    app.state.booking_service = BookingService(store)
    app.state.schedule_service = ScheduleService(
        store,
        SlotPlanner(timezone=config.timezone),
        StaticEntitlements(config.premium_accounts),
    )

    @app.exception_handler(RequestValidationError)
    async def invalid_body(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse({"message": "Invalid request body."}, status_code=400)

    @app.exception_handler(Exception)
    async def unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse({"message": GENERIC_STORE_MESSAGE}, status_code=500)

    # --- Booking Routes ---

    @app.post("/api/bookings")
    def create_booking(data: CreateBookingPayload) -> JSONResponse:
        """Book a slot, or replace the visitor's booking when confirmed."""
        if not data.slotId or not data.visitorName or not data.numberOfPeople:
            return JSONResponse(
                {"message": "Incomplete data to create the booking."}, status_code=400
            )

        result = app.state.booking_service.book(
            BookingRequest(
                slot_id=data.slotId,
                visitor_name=data.visitorName,
                number_of_people=data.numberOfPeople,
                replace_existing=bool(data.replaceExisting),
            )
        )
        return booking_response(result)

    @app.delete("/api/bookings")
    def cancel_booking(data: CancelBookingPayload) -> JSONResponse:
        """Cancel the visitor's booking on a slot."""
        if not data.slotId or not data.visitorName:
            return JSONResponse(
                {"message": "Incomplete data to cancel the booking."}, status_code=400
            )

        result = app.state.booking_service.cancel(data.slotId, data.visitorName)
        return booking_response(result)

    # --- Schedule Routes ---

    @app.get("/api/schedules/{code}", response_model=PublicScheduleView)
    def get_public_schedule(code: str):
        """Open slots of a shared schedule with the spots left in each."""
        try:
            view = app.state.schedule_service.public_view(code)
        except VisitPlannerError as exc:
            status = STATUS_BY_OUTCOME[BookingOutcome(exc.outcome)]
            message = GENERIC_STORE_MESSAGE if status == 500 else exc.message
            return JSONResponse({"message": message}, status_code=status)

        schedule = view.schedule
        return PublicScheduleView(
            id=schedule.id,
            name=schedule.name,
            start_date=schedule.start_date.isoformat(),
            end_date=schedule.end_date.isoformat(),
            custom_message=schedule.custom_message,
            slots=[
                PublicSlot(
                    id=occupancy.slot.id,
                    date=occupancy.slot.date.isoformat(),
                    start_time=occupancy.slot.start_time.strftime("%H:%M:%S"),
                    duration_minutes=occupancy.slot.duration_minutes,
                    max_people=occupancy.slot.max_people,
                    total_people=occupancy.total_people,
                    remaining_spots=occupancy.remaining_spots,
                )
                for occupancy in view.slots
            ],
        )

    @app.get("/health")
    def health() -> dict:
        """Health check endpoint."""
        return {"status": "ok"}

    return app
