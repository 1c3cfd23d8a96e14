"""Pydantic models for the payloads the game server pushes to the client."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Callable, List, Optional, Tuple, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import MalformedFrame

T = TypeVar("T")

# (x, y, neighbor mine count, opened, flagged)
TouchedCell = Tuple[int, int, int, bool, bool]

CELL_FIELDS = 5


class GameStatus(IntEnum):
    ACTIVE = 1
    LOST = 2
    WON = 3


class GameInfo(BaseModel):
    """Game metadata as sent by the server. Unknown keys are preserved."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: int
    size_x: int = Field(alias="sizeX", gt=0)
    size_y: int = Field(alias="sizeY", gt=0)
    mines: int = Field(default=0, ge=0)
    time_start: Optional[float] = Field(default=None, alias="timeStart")
    state: GameStatus = GameStatus.ACTIVE
    requests: List[Any] = Field(default_factory=list)

    @field_validator("state", mode="before")
    @classmethod
    def normalize_state(cls, value: Any) -> int:
        if value in (GameStatus.LOST, GameStatus.WON):
            return int(value)
        return int(GameStatus.ACTIVE)

    @property
    def cell_count(self) -> int:
        return self.size_x * self.size_y


class BoardOverlay(BaseModel):
    """The three parallel per-cell arrays, indexed by ``size_y * x + y``."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    opened: List[bool] = Field(alias="o")
    flagged: List[bool] = Field(alias="f")
    # 0..8 neighbor count, 10 revealed mine, 11 the clicked mine
    touch_count: List[int] = Field(alias="t")

    @field_validator("opened", "flagged", mode="before")
    @classmethod
    def coerce_flags(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [bool(v) for v in value]
        return value

    @field_validator("touch_count", mode="before")
    @classmethod
    def coerce_counts(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [int(v or 0) for v in value]
        return value

    @classmethod
    def blank(cls, cell_count: int) -> "BoardOverlay":
        return cls(
            opened=[False] * cell_count,
            flagged=[False] * cell_count,
            touch_count=[0] * cell_count,
        )

    def __len__(self) -> int:
        return len(self.opened)


class UpdateInfo(BaseModel):
    """One confirmed click result; ``touchCells`` is a flat list of 5-tuples."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    touch_cells: List[int] = Field(default_factory=list, alias="touchCells")
    time: Any = None

    @field_validator("touch_cells", mode="before")
    @classmethod
    def coerce_cells(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [int(v) if isinstance(v, bool) else v for v in value]
        return value

    @field_validator("touch_cells")
    @classmethod
    def whole_cells(cls, value: List[int]) -> List[int]:
        if len(value) % CELL_FIELDS:
            raise ValueError(
                f"touchCells length {len(value)} is not a multiple of {CELL_FIELDS}"
            )
        return value

    def cells(self) -> List[TouchedCell]:
        out: List[TouchedCell] = []
        for i in range(0, len(self.touch_cells), CELL_FIELDS):
            x, y, count, opened, flagged = self.touch_cells[i : i + CELL_FIELDS]
            out.append((x, y, count, bool(opened), bool(flagged)))
        return out


def _validated(build: Callable[[], T], what: str) -> T:
    try:
        return build()
    except (ValidationError, IndexError, TypeError, ValueError) as exc:
        raise MalformedFrame(f"invalid {what} payload: {exc}") from exc


def _require_int(value: Any, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an integer, got {value!r}")
    return value


# ---------- Inbound actions ----------
# Each ``from_args`` takes the action payload spread as positional arguments.


@dataclass(frozen=True)
class SyncGame:
    info: GameInfo
    overlay: BoardOverlay
    history: List[UpdateInfo]

    @classmethod
    def from_args(cls, *args: Any) -> "SyncGame":
        def build() -> SyncGame:
            game_info, board_overlay = args[0], args[1]
            history = args[2] if len(args) > 2 and args[2] is not None else []
            return cls(
                info=GameInfo.model_validate(game_info),
                overlay=BoardOverlay.model_validate(board_overlay),
                history=[UpdateInfo.model_validate(item) for item in history],
            )

        return _validated(build, "sync")


@dataclass(frozen=True)
class ClickDelta:
    action_seq: int
    game_id: int
    update: UpdateInfo

    @classmethod
    def from_args(cls, *args: Any) -> "ClickDelta":
        def build() -> ClickDelta:
            return cls(
                action_seq=_require_int(args[0], "actionSeq"),
                game_id=_require_int(args[1], "gameId"),
                update=UpdateInfo.model_validate(args[2]),
            )

        return _validated(build, "click delta")


@dataclass(frozen=True)
class GameOver:
    game_id: int
    info: GameInfo
    overlay: BoardOverlay

    @classmethod
    def from_args(cls, *args: Any) -> "GameOver":
        # (gameId, _, gameInfo, user, _, boardOverlay)
        def build() -> GameOver:
            return cls(
                game_id=_require_int(args[0], "gameId"),
                info=GameInfo.model_validate(args[2]),
                overlay=BoardOverlay.model_validate(args[5]),
            )

        return _validated(build, "game over")
