"""Turns a user click into the protocol action the server expects."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Dict, List, Optional, Tuple

from .errors import InvalidInput, NoGame
from .game import Coord, Game


class ClickType(IntEnum):
    PROBE = 0
    FLAG = 1
    CHORD = 3


class ClickButton(IntEnum):
    LEFT = 0
    RIGHT = 1


BUTTON_ALIASES: Dict[str, ClickButton] = {
    "left": ClickButton.LEFT,
    "leftClick": ClickButton.LEFT,
    "lc": ClickButton.LEFT,
    "l": ClickButton.LEFT,
    "right": ClickButton.RIGHT,
    "rightClick": ClickButton.RIGHT,
    "rc": ClickButton.RIGHT,
    "r": ClickButton.RIGHT,
}


@dataclass(frozen=True)
class ClickIntent:
    action_type: ClickType
    coords: Coord
    touched_cells: Tuple[Coord, ...]


def resolve_button(button: str | ClickButton) -> ClickButton:
    if isinstance(button, ClickButton):
        return button
    try:
        return BUTTON_ALIASES[button]
    except KeyError as exc:
        raise InvalidInput(f"Unknown click button {button!r}") from exc


def parse_coord(value: Any, name: str) -> int:
    if isinstance(value, bool):
        raise InvalidInput(f"{name} must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise InvalidInput(f"{name} must be an integer, got {value!r}") from exc


def chord_cells(game: Game, x: int, y: int) -> List[Coord]:
    """Cells a chord on (x, y) opens, or nothing when the flag count is off."""

    neighbors = game.neighbors(x, y)
    flagged = sum(1 for nx, ny in neighbors if game.is_flagged(nx, ny))
    # The server sends nothing back for a chord whose flags don't match.
    if flagged != game.touch_count(x, y):
        return []
    return [
        (nx, ny)
        for nx, ny in neighbors
        if not game.is_opened(nx, ny) and not game.is_flagged(nx, ny)
    ]


def plan_click(game: Game, button: str | ClickButton, x: Any, y: Any) -> ClickIntent:
    """Decide the action type and touched cells for a click. Pure."""

    resolved = resolve_button(button)
    cx, cy = parse_coord(x, "x"), parse_coord(y, "y")
    if not game.in_bounds(cx, cy):
        raise InvalidInput(
            f"({cx}, {cy}) is outside the {game.size_x}x{game.size_y} board"
        )

    if resolved is ClickButton.RIGHT:
        return ClickIntent(ClickType.FLAG, (cx, cy), ((cx, cy),))

    if game.is_flagged(cx, cy):
        raise InvalidInput(f"({cx}, {cy}) is flagged; remove the flag first")
    if not game.is_opened(cx, cy):
        return ClickIntent(ClickType.PROBE, (cx, cy), ((cx, cy),))
    return ClickIntent(ClickType.CHORD, (cx, cy), tuple(chord_cells(game, cx, cy)))


def click_payload(
    game: Optional[Game],
    button: str | ClickButton,
    x: Any,
    y: Any,
    now: Optional[int] = None,
) -> List[Any]:
    """Plan a click and build its outbound payload.

    Starts the local timer on the first click of a game.
    """

    if game is None:
        raise NoGame("No game has been synced yet")
    if game.finished:
        raise NoGame(f"Game {game.id} is over; start or restore a game first")

    intent = plan_click(game, button, x, y)
    if not game.is_active:
        game.start(now)

    cx, cy = intent.coords
    return [
        game.action_count,
        game.id,
        int(intent.action_type),
        cx,
        cy,
        game.time_elapsed(now),
        [[tx, ty] for tx, ty in intent.touched_cells],
        "",
        None,
        None,
    ]
