"""Background retention sweep for alert history."""
import asyncio
from typing import Optional

from cryptosense.core.exceptions import PersistenceError
from cryptosense.core.logging.structured_logger import get_logger
from .dispatcher import NotificationDispatcher

logger = get_logger(__name__)


class AlertRetentionSweeper:
    """Periodically deletes alert history older than ``retention_days``.

    Fire-and-forget maintenance: a failed sweep is logged and the next one
    runs on schedule.
    """

    def __init__(self, dispatcher: NotificationDispatcher,
                 retention_days: int = 30,
                 interval_seconds: float = 86400):
        self.dispatcher = dispatcher
        self.retention_days = retention_days
        self.interval_seconds = interval_seconds
        self._stop = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    async def sweep_once(self) -> int:
        try:
            return await self.dispatcher.cleanup_old_alerts(self.retention_days)
        except PersistenceError as e:
            logger.error("Alert history sweep failed", {"retention_days": self.retention_days}, error=e)
            return 0

    async def run(self) -> None:
        while not self._stop.is_set():
            await self.sweep_once()
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self.interval_seconds)
            except asyncio.TimeoutError:
                pass

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._stop.clear()
            self._task = asyncio.create_task(self.run())

    async def stop(self) -> None:
        self._stop.set()
        if self._task:
            await self._task
            self._task = None
