"""minesocket: a terminal client for minesweeper.online's push-channel protocol."""

from .client import GameSocket
from .config import Settings
from .errors import GameError
from .game import Game

__all__ = ["Game", "GameError", "GameSocket", "Settings"]
