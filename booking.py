"""Booking workflow: validate, log in, check the slot, commit, mirror, confirm.

Stages run one after another and each one is awaited before the next starts.
A fatal error stops the submission and is returned as a failed
``BookingResult``; non-fatal errors (profile lookup, calendar mirror, LINE
push) are logged and listed in ``warnings``.

The availability check is only a courtesy to the user. Two clients can both
pass it for the same slot; the unique constraint on ``scheduled_at`` decides
which insert wins and the loser gets SlotUnavailable.
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Awaitable, Dict, List, Optional, Set, TypeVar

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import sessionmaker
from sqlmodel import select

from calendar_mirror import CalendarMirror
from errors import (
    AuthRequired,
    AvailabilityCheckFailed,
    BookingError,
    CommitFailed,
    MessagingSendFailed,
    ProfileUnavailable,
    SlotUnavailable,
    SubmissionInProgress,
    ValidationFailed,
)
from line_platform import AuthGateway, Messenger
from models import Booking, BookingOut, BookingRequest, BookingResult, SlotStatus
from slots import format_slot, generate_time_slots, normalize_slot, parse_date, split_slot

logger = logging.getLogger(__name__)

T = TypeVar("T")

# PostgreSQL SQLSTATE for unique_violation
UNIQUE_VIOLATION = "23505"


@dataclass(frozen=True)
class BookingForm:
    name: str
    phone: str
    date: str
    time: str
    symptom: str
    slot: datetime


def validate_form(request: BookingRequest, time_slots: List[str]) -> BookingForm:
    """Trim every field and reject anything missing or off the slot grid."""
    name = request.name.strip()
    phone = re.sub(r"[^0-9]", "", request.phone)
    date_str = request.date.strip()
    time_str = request.time.strip()
    symptom = request.symptom.strip()

    if not name or not phone or not date_str or not time_str or not symptom:
        raise ValidationFailed()

    if time_str not in time_slots:
        raise ValidationFailed(f"Invalid time: {time_str}")

    try:
        parse_date(date_str)
        slot = normalize_slot(date_str, time_str)
    except ValueError as e:
        raise ValidationFailed(f"Invalid date: {date_str}") from e

    return BookingForm(
        name=name, phone=phone, date=date_str, time=time_str, symptom=symptom, slot=slot
    )


def is_unique_violation(exc: IntegrityError) -> bool:
    orig = exc.orig
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if code == UNIQUE_VIOLATION:
        return True
    # SQLite reports no SQLSTATE
    return "UNIQUE constraint failed" in str(orig)


async def check_availability(session: AsyncSession, slot: datetime) -> None:
    """Raise SlotUnavailable if a booking already holds ``slot``."""
    statement = select(func.count(Booking.id)).where(Booking.scheduled_at == slot)
    try:
        result = await session.execute(statement)
        count = result.scalar_one()
    except SQLAlchemyError as e:
        logger.error(f"❌ Slot check failed for {format_slot(slot)}: {e}")
        raise AvailabilityCheckFailed(f"Could not check the time slot: {e}") from e

    if count > 0:
        logger.info(f"⛔ Slot {format_slot(slot)} is already booked")
        raise SlotUnavailable()


async def commit_booking(session: AsyncSession, booking: Booking) -> Booking:
    """Insert ``booking``; a unique conflict means the slot was taken meanwhile."""
    session.add(booking)
    try:
        # The flush inside commit assigns booking.id; attributes stay loaded
        # because sessions are built with expire_on_commit=False
        await session.commit()
    except IntegrityError as e:
        await session.rollback()
        if is_unique_violation(e):
            logger.info(f"⛔ Slot {format_slot(booking.scheduled_at)} was booked concurrently")
            raise SlotUnavailable("This time was just booked, please pick another time") from e
        logger.error(f"❌ Booking insert failed: {e.orig}")
        raise CommitFailed(f"Could not save the booking: {e.orig}") from e
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error(f"❌ Booking insert failed: {e}")
        raise CommitFailed(f"Could not save the booking: {e}") from e

    logger.info(f"✅ Booking {booking.id} saved for {format_slot(booking.scheduled_at)}")
    return booking


def format_confirmation(booking: Booking) -> str:
    date_str, time_str = split_slot(booking.scheduled_at)
    return (
        "✅ Booking confirmed!\n"
        f"👤 Name: {booking.patient_name}\n"
        f"📅 Date: {date_str}\n"
        f"🕒 Time: {time_str}\n"
        f"📋 Symptom: {booking.chief_complaint}"
    )


async def list_day_slots(
    session: AsyncSession, target_date: date, time_slots: List[str]
) -> List[SlotStatus]:
    """Return every grid time on ``target_date`` marked available or occupied."""
    day_start = datetime.combine(target_date, datetime.min.time())
    statement = select(Booking).where(
        Booking.scheduled_at >= day_start,
        Booking.scheduled_at < day_start + timedelta(days=1),
    )
    result = await session.execute(statement)
    bookings = result.scalars().all()

    # Key: HH:MM -> Booking
    booking_map: Dict[str, Booking] = {split_slot(b.scheduled_at)[1]: b for b in bookings}

    schedule = []
    for time_str in time_slots:
        existing = booking_map.get(time_str)
        schedule.append(
            SlotStatus(
                time=time_str,
                scheduled_at=format_slot(normalize_slot(target_date.isoformat(), time_str)),
                status="occupied" if existing else "available",
                patient_name=existing.patient_name if existing else None,
            )
        )
    return schedule


class BookingPipeline:
    def __init__(
        self,
        sessions: sessionmaker,
        auth: AuthGateway,
        messenger: Optional[Messenger] = None,
        mirror: Optional[CalendarMirror] = None,
        timeout: float = 10.0,
        time_slots: Optional[List[str]] = None,
    ):
        self.sessions = sessions
        self.auth = auth
        self.messenger = messenger
        self.mirror = mirror
        self.timeout = timeout
        self.time_slots = time_slots or generate_time_slots()
        self._in_flight: Set[str] = set()

    async def submit(self, request: BookingRequest, access_token: Optional[str] = None) -> BookingResult:
        if access_token and access_token in self._in_flight:
            error = SubmissionInProgress()
            return BookingResult(ok=False, error=error.code, message=error.message)

        if access_token:
            self._in_flight.add(access_token)
        warnings: List[str] = []
        try:
            return await self._run(request, access_token, warnings)
        except BookingError as e:
            logger.warning(f"Booking aborted: {e.code}: {e.message}")
            return BookingResult(
                ok=False,
                error=e.code,
                message=e.message,
                login_url=getattr(e, "login_url", None),
                warnings=warnings,
            )
        finally:
            if access_token:
                self._in_flight.discard(access_token)

    async def _run(
        self, request: BookingRequest, access_token: Optional[str], warnings: List[str]
    ) -> BookingResult:
        form = validate_form(request, self.time_slots)

        logged_in = await self._within(
            self.auth.is_logged_in(access_token), AuthRequired(self.auth.login_url())
        )
        if not logged_in or not access_token:
            raise AuthRequired(self.auth.login_url())

        user_id: Optional[str] = None
        try:
            profile = await self._within(self.auth.get_profile(access_token), ProfileUnavailable())
            user_id = profile.user_id
        except ProfileUnavailable as e:
            self._record(warnings, e)

        slot = form.slot

        await self._within(
            self._check_availability(slot),
            AvailabilityCheckFailed("Slot check timed out"),
        )

        booking = await self._within(
            self._commit(
                Booking(
                    patient_name=form.name,
                    phone=form.phone,
                    scheduled_at=slot,
                    chief_complaint=form.symptom,
                    line_user_id=user_id,
                )
            ),
            CommitFailed("Saving the booking timed out"),
        )

        if self.mirror is not None:
            try:
                await self.mirror.mirror(booking)
            except BookingError as e:
                self._record(warnings, e)

        text = format_confirmation(booking)
        if user_id and self.messenger is not None:
            try:
                await self._within(self.messenger.push_message(user_id, text), MessagingSendFailed())
            except MessagingSendFailed as e:
                self._record(warnings, e)

        return BookingResult(
            ok=True,
            booking=BookingOut.from_booking(booking),
            confirmation=text,
            close_view=True,
            warnings=warnings,
        )

    async def _check_availability(self, slot: datetime) -> None:
        async with self.sessions() as session:
            await check_availability(session, slot)

    async def _commit(self, booking: Booking) -> Booking:
        async with self.sessions() as session:
            return await commit_booking(session, booking)

    async def _within(self, awaitable: Awaitable[T], on_timeout: BookingError) -> T:
        try:
            return await asyncio.wait_for(awaitable, self.timeout)
        except asyncio.TimeoutError as e:
            raise on_timeout from e

    def _record(self, warnings: List[str], error: BookingError) -> None:
        logger.warning(f"⚠️ {error.code}: {error.message}")
        warnings.append(f"{error.code}: {error.message}")
