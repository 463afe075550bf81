"""
Feed Supervisor

Owns one task per feed. Each task loops: run the feed until its connection
closes (or its poll completes), wait a fixed delay, repeat. There is no
backoff and no attempt ceiling; the loop ends only on ``stop``.
"""

import asyncio
from typing import Dict, List, Optional

from ..core.logging.structured_logger import get_logger
from .feeds.base import Feed, Publish, StreamFeed

logger = get_logger(__name__)


class FeedSupervisor:
    """Keeps upstream feeds running across disconnects and errors"""

    def __init__(self, publish: Publish, reconnect_delay: float = 5.0):
        """
        Args:
            publish: coroutine receiving every normalized event
            reconnect_delay: fixed seconds between stream reconnect attempts
        """
        self.publish = publish
        self.reconnect_delay = reconnect_delay
        self.feeds: List[Feed] = []
        self.state: Dict[str, Dict] = {}
        self._stop = asyncio.Event()
        self._tasks: Dict[str, asyncio.Task] = {}

    def add(self, feed: Feed) -> None:
        self.feeds.append(feed)
        self.state[feed.name] = {"state": "idle", "runs": 0, "last_error": None}

    def start(self) -> None:
        self._stop.clear()
        for feed in self.feeds:
            task = self._tasks.get(feed.name)
            if task is None or task.done():
                self._tasks[feed.name] = asyncio.create_task(self._supervise(feed), name=f"feed:{feed.name}")
        logger.info("Feed supervisor started", {"feeds": [feed.name for feed in self.feeds]})

    async def stop(self) -> None:
        """Cancel reconnect timers and running connections"""
        self._stop.set()
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()

        for feed in self.feeds:
            await feed.close()
        logger.info("Feed supervisor stopped")

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks.values())

    async def _supervise(self, feed: Feed) -> None:
        is_stream = isinstance(feed, StreamFeed)
        delay = feed.restart_delay if feed.restart_delay is not None else self.reconnect_delay
        status = self.state.setdefault(feed.name, {"state": "idle", "runs": 0, "last_error": None})

        while not self._stop.is_set():
            status["runs"] += 1
            status["state"] = "running"
            if is_stream:
                logger.log_feed_state(feed.name, "connecting", attempt=status["runs"])

            try:
                await feed.run_once(self.publish)
                status["last_error"] = None
            except asyncio.CancelledError:
                raise
            except Exception as e:
                status["last_error"] = str(e) or type(e).__name__
                logger.error(f"Feed {feed.name} failed", {"run": status["runs"]}, error=e)

            if self._stop.is_set():
                break

            status["state"] = "waiting"
            if is_stream:
                logger.log_feed_state(feed.name, "disconnected", reconnect_in=delay)

            if await self._wait_stop(delay):
                break

        status["state"] = "stopped"

    async def _wait_stop(self, delay: float) -> bool:
        """Sleep ``delay`` seconds; True if stop was requested meanwhile"""
        try:
            await asyncio.wait_for(self._stop.wait(), timeout=delay)
            return True
        except asyncio.TimeoutError:
            return False

    def stats(self) -> Dict[str, Dict]:
        return {name: dict(status) for name, status in self.state.items()}
