"""Client-side board model for one minesweeper.online game."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .errors import MalformedFrame, Mismatch
from .messages import (
    BoardOverlay,
    ClickDelta,
    GameInfo,
    GameOver,
    GameStatus,
    SyncGame,
    TouchedCell,
    UpdateInfo,
)

logger = logging.getLogger(__name__)

Coord = Tuple[int, int]

REVEALED_MINE = 10
CLICKED_MINE = 11

NEIGHBOR_OFFSETS: Tuple[Coord, ...] = (
    (-1, -1),
    (0, -1),
    (1, -1),
    (1, 0),
    (1, 1),
    (0, 1),
    (-1, 1),
    (-1, 0),
)


def now_ms() -> int:
    return int(time.time() * 1000)


def _check_overlay(info: GameInfo, overlay: BoardOverlay) -> None:
    expected = info.cell_count
    lengths = (len(overlay.opened), len(overlay.flagged), len(overlay.touch_count))
    if any(n != expected for n in lengths):
        raise MalformedFrame(
            f"board overlay lengths {lengths} do not match a "
            f"{info.size_x}x{info.size_y} grid"
        )
    if any(o and f for o, f in zip(overlay.opened, overlay.flagged)):
        raise MalformedFrame("board overlay has a cell both opened and flagged")


@dataclass
class Game:
    """Authoritative game metadata plus the per-cell overlay.

    Two write paths exist and stay separate: ``start`` is the only local,
    optimistic mutation (the timer); everything else changes only through
    server-confirmed ``apply_delta`` and ``apply_game_over``.
    """

    info: GameInfo
    overlay: BoardOverlay
    history: List[UpdateInfo] = field(default_factory=list)
    finished: bool = False

    def __post_init__(self) -> None:
        _check_overlay(self.info, self.overlay)
        if self.info.state is not GameStatus.ACTIVE:
            self.finished = True

    @classmethod
    def from_sync(cls, message: SyncGame) -> "Game":
        return cls(
            info=message.info,
            overlay=message.overlay,
            history=list(message.history),
        )

    # ---- metadata ----

    @property
    def id(self) -> int:
        return self.info.id

    @property
    def size_x(self) -> int:
        return self.info.size_x

    @property
    def size_y(self) -> int:
        return self.info.size_y

    @property
    def mines(self) -> int:
        return self.info.mines

    @property
    def status(self) -> GameStatus:
        return self.info.state

    @property
    def action_count(self) -> int:
        """Sequence number the next confirmed delta must carry."""
        return len(self.history)

    @property
    def is_active(self) -> bool:
        return bool(self.info.time_start)

    def start(self, now: Optional[int] = None) -> None:
        self.info.time_start = now_ms() if now is None else now

    def time_elapsed(self, now: Optional[int] = None) -> Optional[int]:
        if not self.is_active:
            return None
        current = now_ms() if now is None else now
        return int(current - self.info.time_start)

    # ---- geometry ----

    def coord_to_idx(self, x: int, y: int) -> int:
        return self.size_y * x + y

    def in_bounds(self, x: int, y: int) -> bool:
        return 0 <= x < self.size_x and 0 <= y < self.size_y

    def neighbors(self, x: int, y: int) -> List[Coord]:
        return [
            (x + dx, y + dy)
            for dx, dy in NEIGHBOR_OFFSETS
            if self.in_bounds(x + dx, y + dy)
        ]

    def is_opened(self, x: int, y: int) -> bool:
        return self.overlay.opened[self.coord_to_idx(x, y)]

    def is_flagged(self, x: int, y: int) -> bool:
        return self.overlay.flagged[self.coord_to_idx(x, y)]

    def touch_count(self, x: int, y: int) -> int:
        return self.overlay.touch_count[self.coord_to_idx(x, y)]

    # ---- server-confirmed updates ----

    def apply_delta(self, delta: ClickDelta) -> List[TouchedCell]:
        """Apply one confirmed click result and return the cells it touched."""

        if delta.game_id != self.id:
            raise Mismatch(f"Game ID mismatch: got {delta.game_id}, have {self.id}")
        if delta.action_seq != self.action_count:
            raise Mismatch(
                f"Click numbers mismatch: got {delta.action_seq}, "
                f"expected {self.action_count}"
            )
        if self.finished:
            raise Mismatch(f"Game {self.id} is already finished")

        cells = delta.update.cells()
        for x, y, _, opened, flagged in cells:
            if not self.in_bounds(x, y):
                raise MalformedFrame(f"delta touches ({x}, {y}) outside the grid")
            if opened and flagged:
                raise MalformedFrame(f"delta marks ({x}, {y}) opened and flagged")

        self.history.append(delta.update)
        self.info.requests.append(delta.update.time)
        for x, y, count, opened, flagged in cells:
            idx = self.coord_to_idx(x, y)
            self.overlay.opened[idx] = opened
            self.overlay.flagged[idx] = flagged
            self.overlay.touch_count[idx] = count if opened else 0
        return cells

    def apply_game_over(self, message: GameOver) -> None:
        if message.game_id != self.id:
            raise Mismatch(f"Game ID mismatch: got {message.game_id}, have {self.id}")
        _check_overlay(message.info, message.overlay)

        info = message.info
        if info.state is GameStatus.ACTIVE:
            logger.warning("Game %s ended without a won/lost state; recording it as lost", self.id)
            info.state = GameStatus.LOST
        self.info = info
        self.overlay = message.overlay
        self.finished = True

    # ---- display ----

    def __str__(self) -> str:
        rows: List[str] = []
        for y in range(self.size_y):
            row = []
            for x in range(self.size_x):
                idx = self.coord_to_idx(x, y)
                if self.overlay.opened[idx]:
                    value = self.overlay.touch_count[idx]
                    if value == 0:
                        row.append(".")
                    elif value == CLICKED_MINE:
                        row.append("B")
                    elif value == REVEALED_MINE:
                        row.append("b")
                    else:
                        row.append(str(value))
                elif self.overlay.flagged[idx]:
                    row.append("f")
                else:
                    row.append("x")
            rows.append("".join(row))
        return "\n".join(rows) + "\n"
