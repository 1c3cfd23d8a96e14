"""Fakes for the network collaborators plus board payload builders."""

from __future__ import annotations

import asyncio
import json
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

import httpx
from websockets.exceptions import ConnectionClosedOK


SID_BODY = '96:0{"sid":"abc123","upgrades":["websocket"],"pingInterval":25000}2:40'
AUTH_BODY = '24:42["authorized",{"userId":42}]'


class FakeWebSocket:
    """In-memory stand-in for a websockets client connection."""

    def __init__(self, inbound: Iterable[str] = ()) -> None:
        self.sent: List[str] = []
        self.closed = False
        self._inbound: asyncio.Queue[Optional[str]] = asyncio.Queue()
        for frame in inbound:
            self._inbound.put_nowait(frame)

    def feed(self, frame: str) -> None:
        self._inbound.put_nowait(frame)

    def hang_up(self) -> None:
        self._inbound.put_nowait(None)

    async def send(self, message: str) -> None:
        if self.closed:
            raise ConnectionClosedOK(None, None)
        self.sent.append(message)

    async def recv(self) -> str:
        frame = await self._inbound.get()
        if frame is None:
            raise ConnectionClosedOK(None, None)
        return frame

    def __aiter__(self) -> "FakeWebSocket":
        return self

    async def __anext__(self) -> str:
        frame = await self._inbound.get()
        if frame is None:
            raise StopAsyncIteration
        return frame

    async def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._inbound.put_nowait(None)


class FakeConnector:
    def __init__(self, websocket: Any = None, block: bool = False) -> None:
        self.websocket = websocket
        self.block = block
        self.calls: List[Tuple[str, Dict[str, Any]]] = []

    async def __call__(self, url: str, **kwargs: Any) -> Any:
        self.calls.append((url, kwargs))
        if self.block:
            await asyncio.Event().wait()
        return self.websocket


def polling_transport(
    sid_body: str = SID_BODY, auth_body: str = AUTH_BODY, status: int = 200
) -> Tuple[httpx.MockTransport, List[httpx.Request]]:
    seen: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if "sid" in request.url.params:
            return httpx.Response(status, text=auth_body)
        return httpx.Response(status, text=sid_body)

    return httpx.MockTransport(handler), seen


def game_info(game_id: int = 1, size_x: int = 9, size_y: int = 9, mines: int = 10, **extra: Any) -> Dict[str, Any]:
    info = {
        "id": game_id,
        "sizeX": size_x,
        "sizeY": size_y,
        "mines": mines,
        "timeStart": None,
        "state": 1,
        "requests": [],
    }
    info.update(extra)
    return info


def board_overlay(
    size_x: int = 9,
    size_y: int = 9,
    opened: Iterable[Tuple[int, int]] = (),
    flagged: Iterable[Tuple[int, int]] = (),
    counts: Optional[Dict[Tuple[int, int], int]] = None,
) -> Dict[str, List[int]]:
    n = size_x * size_y
    o, f, t = [0] * n, [0] * n, [0] * n
    for x, y in opened:
        o[size_y * x + y] = 1
    for x, y in flagged:
        f[size_y * x + y] = 1
    for (x, y), value in (counts or {}).items():
        t[size_y * x + y] = value
    return {"o": o, "f": f, "t": t}


def response_frame(action: str, payload: List[Any]) -> str:
    return "42" + json.dumps(["response", [action, payload]], separators=(",", ":"))


async def until(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    """Yield to the loop until ``predicate`` holds."""

    async def poll() -> None:
        while not predicate():
            await asyncio.sleep(0.001)

    await asyncio.wait_for(poll(), timeout)
