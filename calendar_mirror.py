import logging
from typing import Optional

import httpx

from errors import MirrorFailed
from slots import split_slot, to_db_time
from models import Booking

logger = logging.getLogger(__name__)


class CalendarMirror:
    """Posts a committed booking to an external calendar webhook.

    The webhook (a Google Apps Script web app in production) answers POST
    with a redirect, so redirects are followed. Any non-2xx final response
    is a MirrorFailed.
    """

    def __init__(
        self,
        webhook_url: str,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.webhook_url = webhook_url
        self.timeout = timeout
        self._client = client

    def payload(self, booking: Booking) -> dict:
        date_str, time_str = split_slot(booking.scheduled_at)
        return {
            "name": booking.patient_name,
            "phone": booking.phone,
            "date": date_str,
            "time": to_db_time(time_str),
            "symptom": booking.chief_complaint,
        }

    async def mirror(self, booking: Booking) -> None:
        body = self.payload(booking)
        try:
            if self._client is not None:
                response = await self._post(self._client, body)
            else:
                async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
                    response = await self._post(client, body)
        except httpx.HTTPError as e:
            logger.warning(f"❌ Calendar webhook request failed: {e!r}")
            raise MirrorFailed(f"Calendar webhook error: {e}") from e

        if not response.is_success:
            text = response.text
            logger.warning(f"❌ Calendar webhook returned {response.status_code}: {text[:200]}")
            raise MirrorFailed(f"Calendar webhook error: {text or response.status_code}")

        logger.info(f"📅 Booking {booking.id} mirrored to calendar")

    async def _post(self, client: httpx.AsyncClient, body: dict) -> httpx.Response:
        return await client.post(
            self.webhook_url,
            json=body,
            timeout=self.timeout,
            follow_redirects=True,
        )
