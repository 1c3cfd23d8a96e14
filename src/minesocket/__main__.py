"""Interactive command prompt for playing through a ``GameSocket``."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
from contextlib import suppress
from typing import Awaitable, Callable, Dict, List, Optional, Sequence

from .capture import CaptureForwarder
from .client import (
    ClickApplied,
    Desynced,
    Disconnected,
    GameEnded,
    GameEvent,
    GameSocket,
    GameSynced,
)
from .config import Settings
from .errors import (
    GameError,
    HandshakeFailed,
    InvalidInput,
    Mismatch,
    NoGame,
    NotConnected,
)

HELP = """commands:
  open                      connect to the game server
  close                     disconnect
  newGame [level]           start a new game (level 1-3, default 1)
  click <button> <x> <y>    click a cell; button is l/lc/left or r/rc/right
  restoreGame <id>          resume a game by id
  board                     show the current board
  quit                      exit"""

Output = Callable[[str], None]


def render_error(error: GameError) -> str:
    """One user-facing line per error."""

    if isinstance(error, NoGame):
        return "Couldn't complete because no game"
    if isinstance(error, InvalidInput):
        return f"Invalid input: {error}"
    if isinstance(error, Mismatch):
        return f"{error}; use restoreGame to resync"
    if isinstance(error, NotConnected):
        return "Not connected; use 'open' first"
    if isinstance(error, HandshakeFailed):
        return f"Could not connect: {error}"
    return str(error)


def render_event(event: GameEvent, socket: GameSocket) -> str:
    board = str(socket.game) if socket.game is not None else ""
    if isinstance(event, GameSynced):
        return f"Game {event.game_id} started\n{board}"
    if isinstance(event, ClickApplied):
        return board
    if isinstance(event, GameEnded):
        return f"Game {event.game_id} {event.status.name.lower()}\n{board}"
    if isinstance(event, Desynced):
        return render_error(event.error)
    if isinstance(event, Disconnected):
        return f"Disconnected ({event.reason})"
    return repr(event)


class CommandShell:
    """Line-oriented commands mapped onto ``GameSocket`` operations."""

    def __init__(self, socket: GameSocket, output: Output = print) -> None:
        self.socket = socket
        self.output = output
        self._commands: Dict[str, Callable[[List[str]], Awaitable[None]]] = {
            "open": self._open,
            "close": self._close,
            "newGame": self._new_game,
            "new": self._new_game,
            "click": self._click,
            "c": self._click,
            "restoreGame": self._restore_game,
            "restore": self._restore_game,
            "board": self._board,
            "help": self._help,
        }

    async def execute(self, line: str) -> bool:
        """Run one command line. Returns False when the shell should exit."""

        parts = line.split()
        if not parts:
            return True
        name, args = parts[0], parts[1:]
        if name in ("quit", "exit"):
            return False

        command = self._commands.get(name)
        if command is None:
            self.output(f"Unknown command {name!r}; try 'help'")
            return True
        try:
            await command(args)
        except GameError as exc:
            self.output(render_error(exc))
        return True

    async def watch_events(self) -> None:
        while True:
            event = await self.socket.events.get()
            self.output(render_event(event, self.socket))

    # ---- commands ----

    async def _open(self, args: List[str]) -> None:
        await self.socket.open()

    async def _close(self, args: List[str]) -> None:
        await self.socket.close()

    async def _new_game(self, args: List[str]) -> None:
        if len(args) > 1:
            raise InvalidInput("usage: newGame [level]")
        await self.socket.new_game(*args)

    async def _click(self, args: List[str]) -> None:
        if len(args) != 3:
            raise InvalidInput("usage: click <button> <x> <y>")
        await self.socket.click(*args)

    async def _restore_game(self, args: List[str]) -> None:
        if len(args) != 1:
            raise InvalidInput("usage: restoreGame <id>")
        await self.socket.restore_game(args[0])

    async def _board(self, args: List[str]) -> None:
        if self.socket.game is None:
            raise NoGame("no game")
        self.output(str(self.socket.game))

    async def _help(self, args: List[str]) -> None:
        self.output(HELP)


async def run_shell(settings: Settings, read_line: Callable[[str], str] = input) -> None:
    capture = CaptureForwarder(settings.capture_url) if settings.capture_url else None
    socket = GameSocket(settings, capture=capture)
    shell = CommandShell(socket)
    watcher = asyncio.create_task(shell.watch_events())
    try:
        await shell.execute("open")
        while True:
            try:
                line = await asyncio.to_thread(read_line, "> ")
            except EOFError:
                break
            if not await shell.execute(line):
                break
    finally:
        watcher.cancel()
        await socket.close()
        if capture is not None:
            await capture.aclose()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="minesocket", description="Play minesweeper.online from the terminal"
    )
    parser.add_argument("--auth-key", help="authKey cookie value (MINESOCKET_AUTH_KEY)")
    parser.add_argument("--session", help="session cookie value (MINESOCKET_SESSION)")
    parser.add_argument("--user-id", help="numeric user id (MINESOCKET_USER_ID)")
    parser.add_argument("--server", help="game server shard, default los1")
    parser.add_argument("--region", help="region code sent with game requests, default CA")
    parser.add_argument("--capture-url", help="forward raw frames to a capture sink")
    parser.add_argument("--log-level", help="logging level, default $LOG_LEVEL or INFO")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> None:
    """Parse arguments and run the interactive prompt."""

    parser = build_parser()
    args = parser.parse_args(argv)

    level = (args.log_level or os.environ.get("LOG_LEVEL", "INFO")).upper()
    logging.basicConfig(level=level, format="%(levelname)8s: [%(name)s] %(message)s")

    settings = Settings.from_env(
        auth_key=args.auth_key,
        session=args.session,
        user_id=args.user_id,
        server=args.server,
        region=args.region,
        capture_url=args.capture_url,
    )
    missing = settings.missing_credentials()
    if missing:
        flags = ", ".join("--" + name.replace("_", "-") for name in missing)
        parser.error(f"missing credentials: {flags}")

    with suppress(KeyboardInterrupt):
        asyncio.run(run_shell(settings))


if __name__ == "__main__":
    main()
