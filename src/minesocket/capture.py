"""Raw frame capture: a small FastAPI sink and the client-side forwarder.

Run the sink with ``python -m minesocket.capture`` and start the client
with ``--capture-url http://localhost:8080`` to record every frame sent
and received. The client never depends on the sink being up.
"""

from __future__ import annotations

import asyncio
import logging
import os
import time
from typing import Dict, Optional, Set

import httpx
import uvicorn
from fastapi import FastAPI
from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)
frame_logger = logging.getLogger("minesocket.capture.frames")

DIRECTIONS = ("send", "receive")

app = FastAPI(
    title="minesocket capture",
    description="Collects raw push-channel frames for protocol analysis",
)


class CapturedFrame(BaseModel):
    """One raw frame as posted by a forwarder."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    data: str
    captured_at: Optional[float] = Field(default=None, alias="capturedAt")


def _record(direction: str, frame: CapturedFrame) -> Dict[str, bool]:
    frame_logger.info("%s %s", direction, frame.data)
    return {"success": True}


@app.post("/send")
def capture_sent(frame: CapturedFrame) -> Dict[str, bool]:
    return _record("send", frame)


@app.post("/receive")
def capture_received(frame: CapturedFrame) -> Dict[str, bool]:
    return _record("receive", frame)


def configure_capture_log(path: str) -> logging.Handler:
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setFormatter(logging.Formatter("%(asctime)s\n%(message)s"))
    frame_logger.addHandler(handler)
    frame_logger.setLevel(logging.INFO)
    return handler


class CaptureForwarder:
    """Posts raw frames to a capture sink in the background."""

    def __init__(
        self,
        base_url: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 2.0,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"), transport=transport, timeout=timeout
        )
        self._pending: Set[asyncio.Task[None]] = set()

    def submit(self, direction: str, raw: str | bytes) -> None:
        if direction not in DIRECTIONS:
            raise ValueError(f"direction must be one of {DIRECTIONS}")
        data = raw.decode("utf-8", "replace") if isinstance(raw, (bytes, bytearray)) else raw
        task = asyncio.get_running_loop().create_task(self.forward(direction, data))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def forward(self, direction: str, data: str) -> None:
        try:
            response = await self._client.post(
                f"/{direction}", json={"data": data, "capturedAt": time.time()}
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.debug("Capture sink unavailable: %s", exc)

    async def aclose(self) -> None:
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
        await self._client.aclose()


def main() -> None:
    """Start the capture sink."""

    logging.basicConfig(level=logging.INFO)
    configure_capture_log(os.environ.get("MINESOCKET_CAPTURE_LOG", "sniff.log"))
    host = os.environ.get("MINESOCKET_CAPTURE_HOST", "127.0.0.1")
    port = int(os.environ.get("MINESOCKET_CAPTURE_PORT", "8080"))
    uvicorn.run("minesocket.capture:app", host=host, port=port, reload=False)


if __name__ == "__main__":
    main()
