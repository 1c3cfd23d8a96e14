"""Polling-to-websocket handshake with the game server.

Three steps: fetch a session id over HTTP polling, have it authorized,
then open the websocket and confirm it with the probe/ack exchange.
The outcome is a single future that is settled exactly once.
"""

from __future__ import annotations

import asyncio
import json
import logging
from contextlib import suppress
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx
from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import WebSocketException

from . import frames
from .config import Settings
from .errors import AuthorizationFailed, GameError, HandshakeFailed, HandshakeTimeout

logger = logging.getLogger(__name__)

ORIGIN = "https://minesweeper.online"

HTTP_HEADERS: Dict[str, str] = {
    "Accept": "*/*",
    "Accept-Language": "en-US,en;q=0.5",
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "Origin": ORIGIN,
    "Referer": ORIGIN + "/",
}

# Headers that may ride along on the websocket upgrade request.
WS_HEADERS: Dict[str, str] = {
    "Accept-Language": HTTP_HEADERS["Accept-Language"],
    "Cache-Control": HTTP_HEADERS["Cache-Control"],
    "Referer": HTTP_HEADERS["Referer"],
}

# Polling bodies wrap the JSON handshake in 4 characters on each side.
SESSION_FRAMING = 4

Connector = Callable[..., Awaitable[Any]]


class HandshakeState(str, Enum):
    IDLE = "idle"
    SESSION_REQUESTED = "session_requested"
    SESSION_AUTHORIZED = "session_authorized"
    SOCKET_OPENING = "socket_opening"
    PROBE_SENT = "probe_sent"
    READY = "ready"
    ERRORED = "errored"


def parse_session_id(body: str) -> str:
    try:
        data = json.loads(body[SESSION_FRAMING:-SESSION_FRAMING])
        sid = data["sid"]
    except (ValueError, KeyError, TypeError) as exc:
        raise HandshakeFailed(f"could not read a session id from {body[:40]!r}") from exc
    if not isinstance(sid, str) or not sid:
        raise HandshakeFailed(f"invalid session id {sid!r}")
    return sid


class HandshakeCoordinator:
    """Drives one handshake attempt. Not reusable; create one per ``open``."""

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        connector: Optional[Connector] = None,
    ) -> None:
        self.settings = settings
        self.state = HandshakeState.IDLE
        self.session_id: Optional[str] = None
        self._transport = transport
        self._connect = connector or connect
        self._outcome: Optional[asyncio.Future[ClientConnection]] = None
        self._websocket: Optional[ClientConnection] = None

    @property
    def settled(self) -> bool:
        return self._outcome is not None and self._outcome.done()

    # ---- completion signal ----

    def succeed(self, websocket: ClientConnection) -> bool:
        if self._outcome is None or self._outcome.done():
            return False
        self.state = HandshakeState.READY
        self.session_id = None
        self._outcome.set_result(websocket)
        logger.info("Connection opened")
        return True

    def fail(self, error: HandshakeFailed) -> bool:
        if self._outcome is None or self._outcome.done():
            return False
        self.state = HandshakeState.ERRORED
        self.session_id = None
        self._outcome.set_exception(error)
        logger.warning("Handshake failed: %s", error)
        return True

    def abort(self, reason: str = "connection closed during handshake") -> bool:
        return self.fail(HandshakeFailed(reason))

    # ---- driver ----

    async def run(self) -> ClientConnection:
        """Perform the handshake and return the ready websocket."""

        if self.state is not HandshakeState.IDLE:
            raise HandshakeFailed("handshake already attempted; start a new one")

        loop = asyncio.get_running_loop()
        self._outcome = loop.create_future()
        driver = loop.create_task(self._drive(), name="minesocket-handshake")
        timeout = self.settings.handshake_timeout
        try:
            await asyncio.wait_for(asyncio.shield(self._outcome), timeout=timeout)
        except asyncio.TimeoutError:
            self.fail(HandshakeTimeout(f"handshake did not complete within {timeout:g}s"))
        except HandshakeFailed:
            pass
        finally:
            driver.cancel()
            self.abort("handshake cancelled")
        await asyncio.gather(driver, return_exceptions=True)

        error = self._outcome.exception()
        if error is not None:
            await self._discard_channel()
            raise error
        return self._outcome.result()

    async def _drive(self) -> None:
        try:
            async with httpx.AsyncClient(
                headers=HTTP_HEADERS,
                transport=self._transport,
                timeout=self.settings.handshake_timeout,
            ) as http:
                sid = await self.request_session(http)
                await self.authorize(http, sid)
            websocket = await self.open_channel(sid)
            await self.exchange_probe(websocket)
        except HandshakeFailed as exc:
            self.fail(exc)
        except GameError as exc:
            self.fail(HandshakeFailed(str(exc)))
        except (httpx.HTTPError, WebSocketException, OSError) as exc:
            self.fail(HandshakeFailed(f"{type(exc).__name__}: {exc}"))
        else:
            self.succeed(websocket)

    def _advance(self, state: HandshakeState) -> None:
        if self.settled:
            raise HandshakeFailed("handshake aborted")
        logger.debug("Handshake %s -> %s", self.state.value, state.value)
        self.state = state

    # ---- steps ----

    async def request_session(self, http: httpx.AsyncClient) -> str:
        logger.debug("Getting sid")
        self._advance(HandshakeState.SESSION_REQUESTED)
        response = await http.get(
            self.settings.polling_url,
            params={**self.settings.auth_params, "transport": "polling"},
        )
        response.raise_for_status()
        self.session_id = parse_session_id(response.text)
        return self.session_id

    async def authorize(self, http: httpx.AsyncClient, sid: str) -> None:
        response = await http.get(
            self.settings.polling_url,
            params={**self.settings.auth_params, "transport": "polling", "sid": sid},
        )
        response.raise_for_status()
        if "authorized" not in response.text:
            raise AuthorizationFailed("sid not authorized")
        self._advance(HandshakeState.SESSION_AUTHORIZED)

    async def open_channel(self, sid: str) -> ClientConnection:
        logger.debug("Opening websocket")
        self._advance(HandshakeState.SOCKET_OPENING)
        self._websocket = await self._connect(
            self.settings.websocket_url(sid),
            origin=ORIGIN,
            additional_headers=WS_HEADERS,
            ping_interval=None,
        )
        return self._websocket

    async def exchange_probe(self, websocket: ClientConnection) -> None:
        await websocket.send(frames.PROBE)
        self._advance(HandshakeState.PROBE_SENT)
        first = frames.decode(await websocket.recv())
        if first.kind is not frames.FrameKind.ACK:
            raise HandshakeFailed(f"Failed handshake: expected probe ack, got {first.kind.value}")
        self._advance(HandshakeState.READY)
        await websocket.send(frames.UPGRADE)

    async def _discard_channel(self) -> None:
        websocket, self._websocket = self._websocket, None
        if websocket is not None:
            with suppress(WebSocketException, OSError):
                await websocket.close()
