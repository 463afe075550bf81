"""WebSocket client adapter for upstream market-data streams."""
import asyncio
from typing import Optional, Callable, Awaitable
import aiohttp
from aiohttp import WSMsgType

from ...core.exceptions import FeedMessageError
from ...core.logging.structured_logger import get_logger

_CLOSING = (WSMsgType.CLOSE, WSMsgType.CLOSING, WSMsgType.CLOSED)


class WebSocketAdapter:
    """One upstream socket for the lifetime of a single feed connection.

    Reconnection belongs to the feed supervisor: ``wait_closed`` returns
    once the upstream hangs up or the reader dies.
    """

    def __init__(self, url: str,
                 on_message: Optional[Callable[[str], Awaitable[None]]] = None,
                 heartbeat: int = 30):
        self.url = url
        self.on_message = on_message
        self.heartbeat = heartbeat

        self.session: Optional[aiohttp.ClientSession] = None
        self.ws: Optional[aiohttp.ClientWebSocketResponse] = None
        self._reader: Optional[asyncio.Task] = None
        self._open = False
        self.logger = get_logger(__name__)

    async def connect(self) -> None:
        self.session = aiohttp.ClientSession()
        try:
            self.ws = await self.session.ws_connect(self.url, heartbeat=self.heartbeat)
        except Exception as e:
            self.logger.error("Upstream stream unreachable", {"url": self.url}, error=e)
            await self._release()
            raise

        self._open = True
        self._reader = asyncio.create_task(self._read_frames())
        self.logger.info("Upstream stream opened", {"url": self.url})

    async def wait_closed(self) -> None:
        if self._reader:
            await asyncio.shield(self._reader)

    async def disconnect(self) -> None:
        self._open = False
        reader, self._reader = self._reader, None
        if reader and not reader.done():
            reader.cancel()
            try:
                await reader
            except asyncio.CancelledError:
                pass
        await self._release()
        self.logger.info("Upstream stream released", {"url": self.url})

    async def send(self, message: str) -> None:
        """Write a text frame; subscription requests go through here."""
        if not self.is_connected:
            raise RuntimeError(f"Stream {self.url} is not open")
        await self.ws.send_str(message)
        self.logger.debug("Frame written", {"url": self.url, "frame": message[:100]})

    async def _read_frames(self) -> None:
        try:
            async for frame in self.ws:
                if frame.type == WSMsgType.TEXT:
                    await self._deliver(frame.data)
                elif frame.type == WSMsgType.ERROR:
                    self.logger.error("Upstream stream errored", {"url": self.url},
                                      error=self.ws.exception())
                    break
                elif frame.type in _CLOSING:
                    self.logger.warning("Upstream stream closed", {
                        "url": self.url,
                        "frame": frame.type.name
                    })
                    break
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.logger.error("Stream reader crashed", {"url": self.url}, error=e)
        finally:
            self._open = False

    async def _deliver(self, data: str) -> None:
        if not self.on_message:
            return
        try:
            await self.on_message(data)
        except FeedMessageError as e:
            self.logger.error("Skipping unparseable feed message", {
                "url": self.url,
                "message": data[:200]
            }, error=e)
        except Exception as e:
            self.logger.error("Feed handler failed", {"url": self.url}, error=e)

    async def _release(self) -> None:
        if self.ws is not None and not self.ws.closed:
            await self.ws.close()
        if self.session is not None and not self.session.closed:
            await self.session.close()

    @property
    def is_connected(self) -> bool:
        return self._open and self.ws is not None and not self.ws.closed
