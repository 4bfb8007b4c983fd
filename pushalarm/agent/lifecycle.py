"""Background agent lifecycle and push event dispatch."""

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, List, Optional

logger = logging.getLogger(__name__)


class AgentState(str, Enum):
    INSTALLING = "installing"
    INSTALLED = "installed"
    ACTIVATING = "activating"
    ACTIVATED = "activated"
    REDUNDANT = "redundant"


class PushEvent:
    """A received push message. Handlers extend its lifetime with wait_until()."""

    def __init__(self, data: Optional[bytes]):
        self.data = data
        self._extensions: List[asyncio.Future] = []

    def text(self) -> Optional[str]:
        if self.data is None:
            return None
        return self.data.decode("utf-8", errors="replace")

    def wait_until(self, awaitable: Awaitable) -> None:
        self._extensions.append(asyncio.ensure_future(awaitable))

    async def settle(self) -> bool:
        """Wait for every extension; False if any of them failed."""
        if not self._extensions:
            return True
        results = await asyncio.gather(*self._extensions, return_exceptions=True)
        ok = True
        for result in results:
            if isinstance(result, BaseException):
                logger.error("Push handler failed: %r", result, exc_info=result)
                ok = False
        return ok


PushListener = Callable[[PushEvent], None]
StateListener = Callable[[AgentState], None]


class BackgroundAgent:
    """
    Event-driven agent woken by push messages. Only one push is handled at a
    time and a dispatch returns only after the handlers' work settled.
    """

    def __init__(self, state: AgentState = AgentState.INSTALLING):
        self.state = state
        self._push_listeners: List[PushListener] = []
        self._state_listeners: List[StateListener] = []
        self._dispatch_lock = asyncio.Lock()

    def add_push_listener(self, listener: PushListener) -> None:
        self._push_listeners.append(listener)

    def add_state_listener(self, listener: StateListener) -> None:
        self._state_listeners.append(listener)

    def remove_state_listener(self, listener: StateListener) -> None:
        if listener in self._state_listeners:
            self._state_listeners.remove(listener)

    def set_state(self, state: AgentState) -> None:
        if state == self.state:
            return
        logger.debug("Agent state %s -> %s", self.state.value, state.value)
        self.state = state
        for listener in list(self._state_listeners):
            listener(state)

    async def dispatch_push(self, data: Optional[bytes]) -> PushEvent:
        async with self._dispatch_lock:
            event = PushEvent(data)
            for listener in list(self._push_listeners):
                listener(event)
            await event.settle()
            return event
