import logging
from typing import Protocol

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    """OS-level notification surface."""

    async def show_notification(self, title: str, body: str) -> None: ...


class LogNotifier:
    """Writes notifications to the log; used where no OS notification API exists."""

    def __init__(self, logger_name: str = "pushalarm.notifications"):
        self.logger = logging.getLogger(logger_name)

    async def show_notification(self, title: str, body: str) -> None:
        self.logger.info("🔔 %s - %s", title, body)
