import asyncio
import logging
from datetime import datetime
from typing import Callable, List

from pushalarm.agent.evaluator import FiredAlarm, evaluate
from pushalarm.agent.lifecycle import AgentState, BackgroundAgent, PushEvent
from pushalarm.agent.notifications import Notifier
from pushalarm.agent.storage import AlarmStore
from pushalarm.push.models import HEARTBEAT_PAYLOAD

logger = logging.getLogger(__name__)

NOTIFICATION_BODY = "Alarm"


class HeartbeatListener:
    """
    Na każdy "heartbeat" wczytuje alarmy, sprawdza które minęły
    i pokazuje dla nich powiadomienia.
    """

    def __init__(
        self,
        store: AlarmStore,
        notifier: Notifier,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.store = store
        self.notifier = notifier
        self.clock = clock
        self.attached = False

    def install(self, agent: BackgroundAgent) -> None:
        """Attach to the agent now if it is active, otherwise once it activates."""
        if agent.state == AgentState.ACTIVATED:
            self._attach(agent)
            return

        logger.info("Agent is %s, deferring push listener", agent.state.value)

        def on_state_change(state: AgentState) -> None:
            if state == AgentState.ACTIVATED:
                agent.remove_state_listener(on_state_change)
                self._attach(agent)

        agent.add_state_listener(on_state_change)

    def _attach(self, agent: BackgroundAgent) -> None:
        if self.attached:
            return
        agent.add_push_listener(self.on_push)
        self.attached = True
        logger.info("Adding push event listener")

    def on_push(self, event: PushEvent) -> None:
        payload = event.text()
        if payload is None:
            payload = "no payload"
        logger.debug("payload: %s", payload)

        if payload != HEARTBEAT_PAYLOAD:
            return
        event.wait_until(self.check_alarms())

    async def check_alarms(self) -> List[FiredAlarm]:
        alarms = self.store.load()
        fired = evaluate(self.clock(), alarms)
        if not fired:
            return fired

        results = await asyncio.gather(
            *(self.notifier.show_notification(f.message, NOTIFICATION_BODY) for f in fired),
            return_exceptions=True,
        )
        for f, result in zip(fired, results):
            if isinstance(result, Exception):
                logger.error("Could not show notification for %s: %r", f.alarm, result)
        return fired
