"""Connection facade tying the handshake, keep-alive, router and board together."""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Union

import httpx
from websockets.asyncio.client import ClientConnection
from websockets.exceptions import ConnectionClosed, WebSocketException

from . import frames
from .capture import CaptureForwarder
from .clicks import ClickButton, click_payload
from .config import Settings
from .errors import HandshakeFailed, InvalidInput, Mismatch, NoGame, NotConnected
from .game import Game, now_ms
from .handshake import Connector, HandshakeCoordinator
from .keepalive import KeepAlive
from .messages import ClickDelta, GameOver, GameStatus, SyncGame, TouchedCell
from .router import ActionRouter, OutboundAction

logger = logging.getLogger(__name__)

DEFAULT_LEVEL = 1

# Oldest events are dropped once this many are waiting unread.
EVENT_QUEUE_SIZE = 256


# ---------- Events published to the interactive layer ----------


@dataclass(frozen=True)
class GameSynced:
    game_id: int


@dataclass(frozen=True)
class ClickApplied:
    game_id: int
    action_seq: int
    cells: List[TouchedCell]


@dataclass(frozen=True)
class GameEnded:
    game_id: int
    status: GameStatus


@dataclass(frozen=True)
class Desynced:
    """The board may be stale; a restore or new sync is needed."""

    error: Mismatch


@dataclass(frozen=True)
class Disconnected:
    reason: str


GameEvent = Union[GameSynced, ClickApplied, GameEnded, Desynced, Disconnected]


def new_game_payload(level: int, region: str) -> List[Any]:
    return [level, None, None, None, None, 37, 1, None, region, None, None, None, None]


def restore_game_payload(game_id: int, region: str) -> List[Any]:
    return [game_id, None, region, 0]


class GameSocket:
    """One connection to a minesweeper.online game server.

    ``open`` must complete before any game command is sent. Inbound
    frames are applied to ``game`` in arrival order and each change is
    published on ``events``. The queue is bounded by ``event_queue_size``;
    callers that never read it only lose the oldest events.
    """

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        connector: Optional[Connector] = None,
        capture: Optional[CaptureForwarder] = None,
        clock: Callable[[], int] = now_ms,
        event_queue_size: int = EVENT_QUEUE_SIZE,
    ) -> None:
        self.settings = settings
        self.game: Optional[Game] = None
        self.events: asyncio.Queue[GameEvent] = asyncio.Queue(maxsize=event_queue_size)
        self.router = ActionRouter(self)
        self.keepalive = KeepAlive(settings.ping_interval)
        self._transport = transport
        self._connector = connector
        self._capture = capture
        self._clock = clock
        self._ws: Optional[ClientConnection] = None
        self._handshake: Optional[HandshakeCoordinator] = None
        self._reader: Optional[asyncio.Task[None]] = None
        self._send_lock = asyncio.Lock()
        self._closing = False

    @property
    def connected(self) -> bool:
        return self._ws is not None

    async def __aenter__(self) -> "GameSocket":
        await self.open()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # ---- lifecycle ----

    async def open(self) -> None:
        if self._ws is not None:
            logger.warning("Already connected")
            return
        if self._handshake is not None:
            raise HandshakeFailed("a handshake is already in progress")

        logger.debug("Initializing session")
        self._closing = False
        handshake = HandshakeCoordinator(self.settings, self._transport, self._connector)
        self._handshake = handshake
        try:
            websocket = await handshake.run()
        finally:
            self._handshake = None

        # close() ran after the handshake settled but before we resumed.
        if self._closing:
            with suppress(WebSocketException, OSError):
                await websocket.close()
            raise HandshakeFailed("connection closed during handshake")

        self._ws = websocket
        self.keepalive.start(self._send_raw)
        self._reader = asyncio.get_running_loop().create_task(
            self._read_loop(websocket), name="minesocket-reader"
        )
        logger.debug("Initialized session")

    async def close(self) -> None:
        """Stop the keep-alive, abort any handshake and close the channel.

        The board is left as it was.
        """
        self._closing = True
        self.keepalive.stop()
        if self._handshake is not None:
            self._handshake.abort()

        websocket, self._ws = self._ws, None
        reader, self._reader = self._reader, None
        if websocket is not None:
            with suppress(WebSocketException, OSError):
                await websocket.close()
        if reader is not None and reader is not asyncio.current_task():
            reader.cancel()
            await asyncio.gather(reader, return_exceptions=True)
        if websocket is not None:
            logger.info("Connection closed")

    async def _read_loop(self, websocket: ClientConnection) -> None:
        reason = "closed by server"
        try:
            async for raw in websocket:
                self._capture_frame("receive", raw)
                self.router.route(raw)
        except ConnectionClosed as exc:
            if not self._closing:
                reason = f"connection lost: {exc}"
                logger.error("Connection lost: %s", exc)
        except asyncio.CancelledError:
            reason = "closed by client"
            raise
        finally:
            if self._closing:
                reason = "closed by client"
            self.keepalive.stop()
            if self._ws is websocket:
                self._ws = None
            self._publish(Disconnected(reason))

    # ---- outbound ----

    async def _send_raw(self, text: str) -> None:
        websocket = self._ws
        if websocket is None:
            raise NotConnected("Not connected; run open first")
        async with self._send_lock:
            await websocket.send(text)
        self._capture_frame("send", text)

    async def send_action(self, action: OutboundAction | str, payload: List[Any]) -> None:
        name = action.value if isinstance(action, OutboundAction) else action
        message = frames.encode_request(name, payload)
        logger.debug(message)
        await self._send_raw(message)

    async def new_game(self, level: Any = DEFAULT_LEVEL) -> None:
        logger.debug("Starting new game")
        try:
            level = int(level)
        except (TypeError, ValueError) as exc:
            raise InvalidInput(f"Game level must be an integer, got {level!r}") from exc
        await self.send_action(
            OutboundAction.NEW_GAME, new_game_payload(level, self.settings.region)
        )

    async def click(self, button: str | ClickButton, x: Any, y: Any) -> List[Any]:
        if self._ws is None:
            raise NotConnected("Not connected; run open first")
        payload = click_payload(self.game, button, x, y, now=self._clock())
        await self.send_action(OutboundAction.CLICK, payload)
        return payload

    async def restore_game(self, game_id: Any) -> None:
        try:
            game_id = int(game_id)
        except (TypeError, ValueError) as exc:
            raise InvalidInput(f"Game id must be an integer, got {game_id!r}") from exc
        await self.send_action(
            OutboundAction.RESTORE_GAME, restore_game_payload(game_id, self.settings.region)
        )

    # ---- inbound handlers ----

    def on_sync(self, message: SyncGame) -> None:
        self.game = Game.from_sync(message)
        logger.info("Game %s started", self.game.id)
        self._publish(GameSynced(self.game.id))

    def on_click_applied(self, message: ClickDelta) -> None:
        game = self._require_game()
        try:
            cells = game.apply_delta(message)
        except Mismatch as exc:
            self._desynced(exc)
            return
        self._publish(ClickApplied(game.id, message.action_seq, cells))

    def on_game_over(self, message: GameOver) -> None:
        game = self._require_game()
        try:
            game.apply_game_over(message)
        except Mismatch as exc:
            self._desynced(exc)
            return
        logger.info("Game %s %s", game.id, game.status.name.lower())
        self._publish(GameEnded(game.id, game.status))

    def _require_game(self) -> Game:
        if self.game is None:
            raise NoGame("Couldn't complete because no game")
        return self.game

    def _desynced(self, error: Mismatch) -> None:
        logger.warning("%s; the board may be stale", error)
        self._publish(Desynced(error))

    def _publish(self, event: GameEvent) -> None:
        if self.events.full():
            dropped = self.events.get_nowait()
            logger.warning("Event queue full; dropping %s", type(dropped).__name__)
        self.events.put_nowait(event)

    def _capture_frame(self, direction: str, raw: str | bytes) -> None:
        if self._capture is not None:
            self._capture.submit(direction, raw)
