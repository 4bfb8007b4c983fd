"""Wires the device-side pieces together from AgentSettings."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional

import httpx

from pushalarm.agent.lifecycle import AgentState, BackgroundAgent
from pushalarm.agent.listener import HeartbeatListener
from pushalarm.agent.notifications import LogNotifier, Notifier
from pushalarm.agent.relay import (
    NotificationPermission,
    PermissionSource,
    PushManager,
    PushRelayClient,
)
from pushalarm.agent.storage import AlarmBook, AlarmStore, JsonFileKeyValueStore
from pushalarm.deps import AgentSettings, get_agent_settings

logger = logging.getLogger(__name__)


@dataclass
class AgentRuntime:
    agent: BackgroundAgent
    store: AlarmStore
    book: AlarmBook
    listener: HeartbeatListener
    relay: PushRelayClient
    # Registration started by the last switch to "granted", if any
    reregistration: Optional["asyncio.Task[bool]"] = field(default=None, init=False)
    _watching: bool = field(default=False, init=False, repr=False)

    async def activate(self) -> bool:
        """
        Mark the agent active and (re)register for heartbeats.
        Registration is retried whenever the user grants notification permission later.
        """
        self.agent.set_state(AgentState.ACTIVATING)
        self.agent.set_state(AgentState.ACTIVATED)
        if not self._watching:
            self.relay.permissions.on_change(self._permission_changed)
            self._watching = True
        return await self.relay.ensure_registered()

    def _permission_changed(self, state: NotificationPermission) -> None:
        logger.info("Notification permission changed to %s", state.value)
        if state != NotificationPermission.GRANTED:
            return
        self.reregistration = asyncio.ensure_future(self.relay.ensure_registered())


def build_runtime(
    push_manager: PushManager,
    permissions: PermissionSource,
    notifier: Optional[Notifier] = None,
    settings: Optional[AgentSettings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> AgentRuntime:
    settings = settings or get_agent_settings()
    store = AlarmStore(JsonFileKeyValueStore(settings.STORE_PATH))
    agent = BackgroundAgent()
    listener = HeartbeatListener(store, notifier or LogNotifier())
    listener.install(agent)
    relay = PushRelayClient(
        settings.SERVER_URL,
        push_manager,
        permissions,
        transport=transport,
        timeout=settings.HTTP_TIMEOUT_SECONDS,
    )
    logger.debug("Agent runtime ready (store=%s, server=%s)", settings.STORE_PATH, settings.SERVER_URL)
    return AgentRuntime(
        agent=agent,
        store=store,
        book=AlarmBook(store),
        listener=listener,
        relay=relay,
    )
