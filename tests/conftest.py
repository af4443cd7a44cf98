"""Shared fixtures for booking tests."""

import pytest
import pytest_asyncio
from sqlalchemy import func
from sqlmodel import select

from database import build_engine, init_db, session_factory
from errors import MessagingSendFailed, ProfileUnavailable
from line_platform import Profile
from models import Booking, BookingRequest

LIFF_URL = "https://liff.line.me/1657000000-AbCdEfGh"


class FakeAuth:
    """AuthGateway stand-in."""

    def __init__(self, logged_in=True, user_id="U1234567890abcdef", profile_error=False):
        self.logged_in = logged_in
        self.user_id = user_id
        self.profile_error = profile_error
        self.profile_calls = 0

    async def is_logged_in(self, access_token):
        return self.logged_in and bool(access_token)

    def login_url(self):
        return LIFF_URL

    async def get_profile(self, access_token):
        self.profile_calls += 1
        if self.profile_error:
            raise ProfileUnavailable("LINE getProfile error: 500")
        return Profile(user_id=self.user_id, display_name="Somchai")


class FakeMessenger:
    """Messenger stand-in recording pushed messages."""

    def __init__(self, fail=False):
        self.fail = fail
        self.sent = []

    async def push_message(self, user_id, text):
        if self.fail:
            raise MessagingSendFailed("LINE push error: 429")
        self.sent.append((user_id, text))


async def count_bookings(sessions) -> int:
    async with sessions() as session:
        result = await session.execute(select(func.count(Booking.id)))
        return result.scalar_one()


@pytest.fixture
def somchai() -> BookingRequest:
    return BookingRequest(
        name="Somchai",
        phone="0812345678",
        date="2025-09-05",
        time="11:00",
        symptom="fever",
    )


@pytest_asyncio.fixture
async def engine():
    """In-memory SQLite store with the appointments table."""
    engine = build_engine("sqlite+aiosqlite://")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def sessions(engine):
    return session_factory(engine)


@pytest.fixture
def auth():
    return FakeAuth()


@pytest.fixture
def messenger():
    return FakeMessenger()
