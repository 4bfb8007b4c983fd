import asyncio
import logging
from typing import List

from databases import Database
from sqlalchemy import delete, insert, select

from pushalarm.db import database, push_subscriptions

logger = logging.getLogger(__name__)


class SubscriptionRegistry:
    """
    Trwały zbiór endpointów push. Deskryptor jest nieprzezroczystym tekstem:
    nie walidujemy struktury, deduplikujemy po identycznej treści.
    """

    def __init__(self, db: Database):
        self.db = db
        self._lock = asyncio.Lock()

    async def register(self, subscription: str) -> bool:
        """Store the descriptor unless an identical one exists. Returns True if inserted."""
        async with self._lock:
            existing = await self.db.fetch_one(
                select(push_subscriptions.c.id).where(
                    push_subscriptions.c.subscription == subscription
                )
            )
            if existing:
                logger.debug("Subscription already registered (id=%s)", existing["id"])
                return False

            await self.db.execute(
                insert(push_subscriptions).values(subscription=subscription)
            )
        logger.info("Registered push subscription (%d bytes)", len(subscription))
        return True

    async def list_all(self) -> List[str]:
        rows = await self.db.fetch_all(
            select(push_subscriptions.c.subscription).order_by(push_subscriptions.c.id.asc())
        )
        return [row["subscription"] for row in rows]

    async def unregister(self, subscription: str) -> int:
        """Remove a descriptor; only used when pruning of gone endpoints is enabled."""
        async with self._lock:
            rows = await self.db.fetch_all(
                select(push_subscriptions.c.id).where(
                    push_subscriptions.c.subscription == subscription
                )
            )
            if not rows:
                return 0
            await self.db.execute(
                delete(push_subscriptions).where(
                    push_subscriptions.c.subscription == subscription
                )
            )
        logger.info("Removed %d gone push subscription(s)", len(rows))
        return len(rows)


registry = SubscriptionRegistry(database)


# Dependency: registry singleton

def get_registry() -> SubscriptionRegistry:
    return registry
