"""Delivers answers to the Omi user through the integrations notification API."""

import logging

import httpx

from omi_relay.errors import ConfigurationError, NetworkError, UpstreamError

logger = logging.getLogger(__name__)

OMI_API_BASE = "https://api.omi.me"


class NotificationDispatcher:
    """One POST per message, at most once. Non-2xx is a delivery failure.

    Omi reads ``uid`` and ``message`` from the query string; the body is
    empty.
    """

    def __init__(self, app_id: str | None, app_secret: str | None, api_base: str = OMI_API_BASE,
                 timeout: float = 15.0, transport: httpx.AsyncBaseTransport | None = None):
        self.app_id = app_id
        self.app_secret = app_secret
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_config(cls, config: dict, transport: httpx.AsyncBaseTransport | None = None) -> "NotificationDispatcher":
        omi = config.get("omi", {})
        return cls(
            app_id=omi.get("app_id"),
            app_secret=omi.get("app_secret"),
            api_base=omi.get("api_base") or OMI_API_BASE,
            timeout=omi.get("timeout", 15.0),
            transport=transport,
        )

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout, transport=self._transport)
        return self._client

    def notification_url(self) -> str:
        return f"{self.api_base}/v2/integrations/{self.app_id}/notification"

    async def send(self, user_id: str, message: str) -> int:
        """Send ``message`` to ``user_id``. Returns the upstream status code."""
        if not self.app_id:
            raise ConfigurationError("OMI_APP_ID")
        if not self.app_secret:
            raise ConfigurationError("OMI_APP_SECRET")

        try:
            resp = await self.client.post(
                self.notification_url(),
                params={"uid": user_id, "message": message},
                headers={
                    "Authorization": f"Bearer {self.app_secret}",
                    "Content-Type": "application/json",
                },
            )
        except httpx.RequestError as e:
            logger.error(f"[OMI] Notification request failed: {e}")
            raise NetworkError("omi", str(e)) from e

        if not resp.is_success:
            try:
                body = resp.json()
            except ValueError:
                body = resp.text
            logger.error(f"[OMI] Notification rejected: status={resp.status_code} body={str(body)[:200]}")
            raise UpstreamError("omi", resp.status_code, body)

        logger.info(f"[OMI] Notification sent to {user_id}: {resp.status_code}")
        return resp.status_code

    async def close(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None
