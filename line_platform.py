"""LINE platform access for the booking mini-app.

The front end runs inside LIFF and sends its access token with each
submission. Login state, the profile lookup and the confirmation push all go
through LINE's HTTP APIs from here, behind two small interfaces so the
pipeline can run against fakes.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Protocol

import httpx

from errors import MessagingSendFailed, ProfileUnavailable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Profile:
    user_id: str
    display_name: Optional[str] = None


class AuthGateway(Protocol):
    async def is_logged_in(self, access_token: Optional[str]) -> bool: ...

    def login_url(self) -> Optional[str]: ...

    async def get_profile(self, access_token: str) -> Profile: ...


class Messenger(Protocol):
    async def push_message(self, user_id: str, text: str) -> None: ...


class LineGateway:
    """AuthGateway and Messenger backed by the LINE Login and Messaging APIs."""

    def __init__(
        self,
        channel_id: Optional[str] = None,
        channel_access_token: Optional[str] = None,
        liff_id: Optional[str] = None,
        api_base: str = "https://api.line.me",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.channel_id = channel_id
        self.channel_access_token = channel_access_token
        self.liff_id = liff_id
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.api_base, timeout=self.timeout, transport=self._transport
        )

    def login_url(self) -> Optional[str]:
        # Opening the LIFF URL runs the LINE login flow and lands back on the form
        if not self.liff_id:
            return None
        return f"https://liff.line.me/{self.liff_id}"

    async def is_logged_in(self, access_token: Optional[str]) -> bool:
        if not access_token:
            return False

        try:
            async with self._client() as client:
                response = await client.get(
                    "/oauth2/v2.1/verify", params={"access_token": access_token}
                )
        except httpx.HTTPError as e:
            logger.warning(f"⚠️ LINE token verification failed: {e!r}")
            return False

        if response.status_code != 200:
            logger.info(f"🔒 LINE access token rejected ({response.status_code})")
            return False

        try:
            data = response.json()
            client_id = data.get("client_id")
            expires_in = int(data.get("expires_in", 0))
        except (ValueError, TypeError, AttributeError) as e:
            logger.warning(f"⚠️ LINE token verification returned a malformed body: {e!r}")
            return False

        if self.channel_id and str(client_id) != str(self.channel_id):
            logger.warning("🔒 LINE access token was issued for another channel")
            return False
        return expires_in > 0

    async def get_profile(self, access_token: str) -> Profile:
        try:
            async with self._client() as client:
                response = await client.get(
                    "/v2/profile", headers={"Authorization": f"Bearer {access_token}"}
                )
                response.raise_for_status()
        except httpx.HTTPError as e:
            raise ProfileUnavailable(f"LINE getProfile error: {e}") from e

        try:
            data = response.json()
            user_id = data.get("userId")
            display_name = data.get("displayName")
        except (ValueError, AttributeError) as e:
            raise ProfileUnavailable(f"LINE profile response is malformed: {e}") from e

        if not user_id:
            raise ProfileUnavailable("LINE profile has no userId")
        return Profile(user_id=user_id, display_name=display_name)

    async def push_message(self, user_id: str, text: str) -> None:
        if not self.channel_access_token:
            raise MessagingSendFailed("LINE channel access token is not configured")

        body = {"to": user_id, "messages": [{"type": "text", "text": text}]}
        try:
            async with self._client() as client:
                response = await client.post(
                    "/v2/bot/message/push",
                    json=body,
                    headers={"Authorization": f"Bearer {self.channel_access_token}"},
                )
                response.raise_for_status()
        except httpx.HTTPError as e:
            raise MessagingSendFailed(f"LINE push error: {e}") from e

        logger.info(f"💬 Confirmation pushed to LINE user {user_id}")
