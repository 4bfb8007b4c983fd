import logging
from enum import Enum
from typing import Any, Callable, Dict, Optional, Protocol

import httpx

from pushalarm.utils import url_base64_to_bytes

logger = logging.getLogger(__name__)


class NotificationPermission(str, Enum):
    GRANTED = "granted"
    DENIED = "denied"
    DEFAULT = "default"


class PermissionSource(Protocol):
    async def query(self) -> NotificationPermission: ...

    async def request(self) -> NotificationPermission: ...

    def on_change(self, callback: Callable[[NotificationPermission], None]) -> None:
        """Call `callback` with the new state whenever the user changes it."""
        ...


class PushManager(Protocol):
    """The platform push subscription API."""

    async def get_subscription(self) -> Optional[Dict[str, Any]]: ...

    async def subscribe(
        self, user_visible_only: bool, application_server_key: bytes
    ) -> Dict[str, Any]: ...


class PushRelayClient:
    """
    Jednorazowa rejestracja urządzenia u serwera heartbeatów.
    Można ją wołać wielokrotnie: istniejąca subskrypcja jest używana ponownie.
    """

    def __init__(
        self,
        server_url: str,
        push_manager: PushManager,
        permissions: PermissionSource,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 20.0,
    ):
        self.server_url = server_url.rstrip("/")
        self.push_manager = push_manager
        self.permissions = permissions
        self._transport = transport
        self._timeout = timeout

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.server_url,
            transport=self._transport,
            timeout=self._timeout,
        )

    async def ensure_registered(self) -> bool:
        """Returns True once the server holds this device's subscription."""
        try:
            permission = await self.permissions.query()
            if permission == NotificationPermission.DEFAULT:
                permission = await self.permissions.request()
            if permission != NotificationPermission.GRANTED:
                logger.info("Notification permission is %s, push stays off", permission.value)
                return False

            subscription = await self.push_manager.get_subscription()
            if subscription:
                logger.info("Existing subscription found: %s", subscription.get("endpoint"))
            else:
                subscription = await self._subscribe()

            logger.info("Sending subscription to server: %s", subscription.get("endpoint"))
            async with self._client() as client:
                resp = await client.post("/register", json=subscription)
                resp.raise_for_status()
            return True
        except Exception:
            logger.exception("Push registration failed")
            return False

    async def _subscribe(self) -> Dict[str, Any]:
        logger.info("Getting vapidPublicKey")
        async with self._client() as client:
            resp = await client.get("/vapidPublicKey")
            resp.raise_for_status()
        application_server_key = url_base64_to_bytes(resp.text.strip())

        logger.info("Creating subscription")
        return await self.push_manager.subscribe(
            user_visible_only=True,
            application_server_key=application_server_key,
        )
