"""Maps inbound action identifiers to board handlers."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Optional, Protocol

from . import frames
from .errors import GameError, MalformedFrame
from .messages import ClickDelta, GameOver, SyncGame

logger = logging.getLogger(__name__)


class InboundAction(str, Enum):
    SYNC_GAME = "G69.i41"
    CLICK_APPLIED = "G68.t18"
    GAME_OVER = "R35.u43"


class OutboundAction(str, Enum):
    NEW_GAME = "gn16"
    CLICK = "gu57"
    RESTORE_GAME = "gj4"


class GameHandler(Protocol):
    """Receiver for the three inbound game actions."""

    def on_sync(self, message: SyncGame) -> None: ...

    def on_click_applied(self, message: ClickDelta) -> None: ...

    def on_game_over(self, message: GameOver) -> None: ...


class ActionRouter:
    def __init__(self, handler: GameHandler) -> None:
        self.handler = handler

    def route(self, raw: str | bytes) -> Optional[InboundAction]:
        """Decode and dispatch one inbound frame.

        Returns the action that was handled, or None when the frame was
        ignored or dropped. Errors are logged here and never propagate.
        """
        try:
            frame = frames.decode(raw)
        except MalformedFrame as exc:
            logger.warning("Dropping malformed frame: %s", exc)
            return None

        if frame.is_liveness:
            return None
        if frame.kind is not frames.FrameKind.MESSAGE:
            logger.warning("Ignoring unexpected %s frame", frame.kind.value)
            return None
        if frame.channel != frames.RESPONSE:
            logger.warning("Expected response, got %s", frame.channel)
            return None

        try:
            action = InboundAction(frame.action)
        except ValueError:
            logger.warning("Received unhandled function %s", frame.action)
            return None

        try:
            self._dispatch(action, frame.payload)
        except GameError as exc:
            logger.warning("Could not apply %s: %s", action.name, exc)
            return None
        return action

    def _dispatch(self, action: InboundAction, payload: list) -> None:
        if action is InboundAction.SYNC_GAME:
            self.handler.on_sync(SyncGame.from_args(*payload))
        elif action is InboundAction.CLICK_APPLIED:
            self.handler.on_click_applied(ClickDelta.from_args(*payload))
        elif action is InboundAction.GAME_OVER:
            self.handler.on_game_over(GameOver.from_args(*payload))
