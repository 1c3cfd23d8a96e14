"""Fixtures shared across the test modules."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import pytest

from minesocket.config import Settings
from minesocket.game import Game
from minesocket.messages import SyncGame
from support import board_overlay, game_info


@pytest.fixture
def settings() -> Settings:
    return Settings(
        auth_key="key",
        session="sess",
        user_id="42",
        ping_interval=60.0,
        handshake_timeout=1.0,
    )


@pytest.fixture
def make_game():
    def build(
        game_id: int = 1,
        size_x: int = 9,
        size_y: int = 9,
        history: Optional[List[Dict[str, Any]]] = None,
        **overlay: Any,
    ) -> Game:
        return Game.from_sync(
            SyncGame.from_args(
                game_info(game_id, size_x, size_y),
                board_overlay(size_x, size_y, **overlay),
                history or [],
            )
        )

    return build
