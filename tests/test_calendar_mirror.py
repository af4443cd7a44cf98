"""Tests for the calendar webhook mirror."""

import json
from datetime import datetime

import httpx
import pytest

from calendar_mirror import CalendarMirror
from errors import MirrorFailed
from models import Booking

WEBHOOK = "https://script.google.com/macros/s/test/exec"


@pytest.fixture
def booking():
    return Booking(
        id=7,
        patient_name="Somchai",
        phone="0812345678",
        scheduled_at=datetime(2025, 9, 5, 11, 0),
        chief_complaint="fever",
    )


def mirror_with(handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return CalendarMirror(WEBHOOK, client=client)


def test_payload(booking):
    mirror = CalendarMirror(WEBHOOK)

    assert mirror.payload(booking) == {
        "name": "Somchai",
        "phone": "0812345678",
        "date": "2025-09-05",
        "time": "11:00:00",
        "symptom": "fever",
    }


@pytest.mark.asyncio
async def test_posts_json(booking):
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200, text="ok")

    await mirror_with(handler).mirror(booking)

    assert len(requests) == 1
    assert requests[0].method == "POST"
    assert str(requests[0].url) == WEBHOOK
    assert requests[0].headers["content-type"] == "application/json"
    assert json.loads(requests[0].content)["time"] == "11:00:00"


@pytest.mark.asyncio
async def test_follows_redirect(booking):
    """Apps Script answers the POST with a redirect to the result page."""

    def handler(request):
        if request.url.host == "script.google.com":
            return httpx.Response(302, headers={"Location": "https://script.googleusercontent.com/echo"})
        return httpx.Response(200, text="done")

    await mirror_with(handler).mirror(booking)


@pytest.mark.asyncio
async def test_non_2xx_raises(booking):
    mirror = mirror_with(lambda request: httpx.Response(500, text="Exception: quota"))

    with pytest.raises(MirrorFailed) as exc_info:
        await mirror.mirror(booking)

    assert "Exception: quota" in exc_info.value.message
    assert exc_info.value.fatal is False


@pytest.mark.asyncio
async def test_empty_error_body_reports_status(booking):
    mirror = mirror_with(lambda request: httpx.Response(404))

    with pytest.raises(MirrorFailed) as exc_info:
        await mirror.mirror(booking)

    assert "404" in exc_info.value.message


@pytest.mark.asyncio
async def test_transport_error_raises(booking):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(MirrorFailed):
        await mirror_with(handler).mirror(booking)
