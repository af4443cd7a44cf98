import logging
from contextlib import asynccontextmanager
from datetime import date
from typing import List, Optional

from fastapi import Depends, FastAPI, Header, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from booking import BookingPipeline, list_day_slots
from calendar_mirror import CalendarMirror
from config import Settings, get_settings
from database import get_engine, init_db, session_factory
from line_platform import AuthGateway, LineGateway, Messenger
from models import BookingRequest, BookingResult, SlotStatus
from slots import generate_time_slots

logger = logging.getLogger(__name__)

# Result error code -> HTTP status
STATUS_BY_ERROR = {
    "ValidationFailed": 400,
    "AuthRequired": 401,
    "SlotUnavailable": 409,
    "SubmissionInProgress": 429,
    "AvailabilityCheckFailed": 502,
    "CommitFailed": 502,
}


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


async def get_session(request: Request):
    async with request.app.state.sessions() as session:
        yield session


def create_app(
    engine: Optional[AsyncEngine] = None,
    auth: Optional[AuthGateway] = None,
    messenger: Optional[Messenger] = None,
    mirror: Optional[CalendarMirror] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """Build the booking API.

    Collaborators default to the LINE gateway and the calendar webhook from
    settings; tests pass fakes instead.
    """
    settings = settings or get_settings()
    engine = engine or get_engine()

    if auth is None or messenger is None:
        line = LineGateway(
            channel_id=settings.line_channel_id,
            channel_access_token=settings.line_channel_access_token,
            liff_id=settings.liff_id,
            api_base=settings.line_api_base,
            timeout=settings.stage_timeout_seconds,
        )
        auth = auth or line
        if messenger is None and settings.line_channel_access_token:
            messenger = line

    if mirror is None and settings.calendar_webhook_url:
        mirror = CalendarMirror(settings.calendar_webhook_url, timeout=settings.stage_timeout_seconds)

    time_slots = generate_time_slots(
        settings.slot_first_hour, settings.slot_last_hour, settings.slot_step_minutes
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await init_db(app.state.engine)
        logger.info("✅ Booking tables ready")
        yield

    app = FastAPI(title="Clinic Appointment Booking", lifespan=lifespan)
    app.state.engine = engine
    app.state.sessions = session_factory(engine)
    app.state.time_slots = time_slots
    app.state.pipeline = BookingPipeline(
        sessions=app.state.sessions,
        auth=auth,
        messenger=messenger,
        mirror=mirror,
        timeout=settings.stage_timeout_seconds,
        time_slots=time_slots,
    )

    # --- GET /slots ---
    @app.get("/slots", response_model=List[SlotStatus])
    async def get_slots(
        target_date: date,
        session: AsyncSession = Depends(get_session),
    ):
        return await list_day_slots(session, target_date, app.state.time_slots)

    # --- POST /bookings ---
    @app.post("/bookings", response_model=BookingResult)
    async def create_booking(
        booking_data: BookingRequest,
        authorization: Optional[str] = Header(default=None),
    ):
        result = await app.state.pipeline.submit(booking_data, _bearer_token(authorization))
        status_code = 201 if result.ok else STATUS_BY_ERROR.get(result.error, 500)
        return JSONResponse(status_code=status_code, content=result.model_dump())

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    return app


# Run with: uvicorn main:build_app --factory
def build_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings.log_level)
    return create_app(settings=settings)
