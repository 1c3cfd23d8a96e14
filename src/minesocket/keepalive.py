"""Periodic liveness frames for an open push channel."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from websockets.exceptions import ConnectionClosed

from .errors import NotConnected
from .frames import PING

logger = logging.getLogger(__name__)

PING_INTERVAL = 2.0

Sender = Callable[[str], Awaitable[None]]


class KeepAlive:
    """Sends ``PING`` every ``interval`` seconds; at most one timer runs at a time."""

    def __init__(self, interval: float = PING_INTERVAL) -> None:
        self.interval = interval
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, send: Sender) -> None:
        self.stop()
        self._task = asyncio.get_running_loop().create_task(
            self._run(send), name="minesocket-keepalive"
        )

    def stop(self) -> None:
        """Cancel the timer. Synchronous and safe to call repeatedly."""
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()

    async def _run(self, send: Sender) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await send(PING)
            except (ConnectionClosed, NotConnected, OSError) as exc:
                logger.warning("Keep-alive stopped, channel unavailable: %s", exc)
                return
