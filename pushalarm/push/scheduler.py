import asyncio
import logging
from typing import Awaitable, Callable, Dict, Optional, Set

from pushalarm.deps import Settings
from pushalarm.push.models import HEARTBEAT_PAYLOAD
from pushalarm.push.registry import SubscriptionRegistry
from pushalarm.push.webpush import SubscriptionGone, send_web_push

logger = logging.getLogger(__name__)

Sender = Callable[[str, str, Settings], Awaitable[None]]


class HeartbeatBroadcaster:
    """
    Co PUSH_INTERVAL_SECONDS wysyła "heartbeat" do każdej zarejestrowanej
    subskrypcji. Tick działa jako osobne zadanie (fire-and-forget), więc
    wolne dostarczenia nie opóźniają kolejnego ticka.
    """

    def __init__(
        self,
        registry: SubscriptionRegistry,
        settings: Settings,
        send: Sender = send_web_push,
    ):
        self.registry = registry
        self.settings = settings
        self._send = send
        self._timer: Optional[asyncio.Task] = None
        self._ticks: Set[asyncio.Task] = set()

    @property
    def running(self) -> bool:
        return self._timer is not None and not self._timer.done()

    def start(self) -> None:
        if self.running:
            return
        self._timer = asyncio.create_task(self._timer_loop())
        logger.info(
            "Heartbeat broadcaster started (every %ss)", self.settings.PUSH_INTERVAL_SECONDS
        )

    async def stop(self) -> None:
        timer, self._timer = self._timer, None
        tasks = [t for t in (timer, *self._ticks) if t is not None]
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._ticks.clear()
        logger.info("Heartbeat broadcaster stopped")

    async def _timer_loop(self) -> None:
        while True:
            task = asyncio.create_task(self.tick())
            self._ticks.add(task)
            task.add_done_callback(self._ticks.discard)
            await asyncio.sleep(self.settings.PUSH_INTERVAL_SECONDS)

    async def tick(self) -> Dict[str, Optional[BaseException]]:
        """
        One broadcast round. Returns the outcome per subscription: None on
        success, the caught exception otherwise.
        """
        try:
            subscriptions = await self.registry.list_all()
        except Exception:
            # nie przerywamy pętli
            logger.exception("Could not load push subscriptions")
            return {}

        limit = asyncio.Semaphore(max(1, self.settings.PUSH_MAX_CONCURRENCY))

        async def deliver(subscription: str) -> Optional[BaseException]:
            async with limit:
                try:
                    await self._send(subscription, HEARTBEAT_PAYLOAD, self.settings)
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    await self._on_failure(subscription, e)
                    return e
            logger.debug("sent heartbeat")
            return None

        results = await asyncio.gather(*(deliver(s) for s in subscriptions))
        return dict(zip(subscriptions, results))

    async def _on_failure(self, subscription: str, error: Exception) -> None:
        logger.warning("failed to send heartbeat: %s", error)
        if isinstance(error, SubscriptionGone) and self.settings.PRUNE_GONE_SUBSCRIPTIONS:
            try:
                await self.registry.unregister(subscription)
            except Exception:
                logger.exception("Could not remove gone subscription")
