"""Text frame codec for the minesweeper.online push channel.

Control frames are short literal strings. Message frames are the two
character prefix ``42`` followed by a JSON array::

    42["request",["gu57",[0,1,0,0,0,0,[[0,0]],"",null,null],"494"]]
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .errors import MalformedFrame

PING = "2"
PONG = "3"
UPGRADE = "5"
PROBE = "2probe"
PROBE_ACK = "3probe"
MESSAGE_PREFIX = "42"

REQUEST = "request"
RESPONSE = "response"
CHANNELS = (REQUEST, RESPONSE)

# Reproduced verbatim on every outbound request; the server expects it.
OPAQUE_TOKEN = "494"


class FrameKind(str, Enum):
    PROBE = "probe"
    ACK = "ack"
    PING = "ping"
    PONG = "pong"
    UPGRADE = "upgrade"
    MESSAGE = "message"


_CONTROL_KINDS: Dict[str, FrameKind] = {
    PROBE: FrameKind.PROBE,
    PROBE_ACK: FrameKind.ACK,
    PING: FrameKind.PING,
    PONG: FrameKind.PONG,
    UPGRADE: FrameKind.UPGRADE,
}
_CONTROL_TEXT: Dict[FrameKind, str] = {kind: text for text, kind in _CONTROL_KINDS.items()}


@dataclass(frozen=True)
class Frame:
    kind: FrameKind
    channel: Optional[str] = None
    action: Optional[str] = None
    payload: List[Any] = field(default_factory=list)
    token: Optional[str] = None

    @property
    def is_liveness(self) -> bool:
        return self.kind in (FrameKind.PING, FrameKind.PONG)


def decode(raw: str | bytes) -> Frame:
    """Parse one inbound frame, raising ``MalformedFrame`` when it is not valid."""

    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise MalformedFrame("frame is not valid UTF-8") from exc

    kind = _CONTROL_KINDS.get(raw)
    if kind is not None:
        return Frame(kind=kind)

    if not raw.startswith(MESSAGE_PREFIX):
        raise MalformedFrame(f"unexpected opcode in frame {raw[:16]!r}")

    try:
        body = json.loads(raw[len(MESSAGE_PREFIX):])
    except ValueError as exc:
        raise MalformedFrame("message body is not valid JSON") from exc

    if not isinstance(body, list) or len(body) < 2:
        raise MalformedFrame("message body must be [channel, [action, payload, ...]]")
    channel, envelope = body[0], body[1]
    if channel not in CHANNELS:
        raise MalformedFrame(f"unknown channel {channel!r}")
    if not isinstance(envelope, list) or len(envelope) < 2:
        raise MalformedFrame("message envelope must be [action, payload, ...]")
    action, payload = envelope[0], envelope[1]
    if not isinstance(action, str) or not isinstance(payload, list):
        raise MalformedFrame("action must be a string and payload a list")

    token = envelope[2] if len(envelope) > 2 else None
    return Frame(
        kind=FrameKind.MESSAGE,
        channel=channel,
        action=action,
        payload=payload,
        token=token,
    )


def encode(frame: Frame) -> str:
    if frame.kind is not FrameKind.MESSAGE:
        return _CONTROL_TEXT[frame.kind]
    envelope: List[Any] = [frame.action, frame.payload]
    if frame.token is not None:
        envelope.append(frame.token)
    return MESSAGE_PREFIX + _dumps([frame.channel, envelope])


def encode_request(action: str, payload: List[Any]) -> str:
    """Build the outbound text for a request-channel action."""

    return encode(
        Frame(
            kind=FrameKind.MESSAGE,
            channel=REQUEST,
            action=action,
            payload=payload,
            token=OPAQUE_TOKEN,
        )
    )


def _dumps(value: Any) -> str:
    # Compact, non-escaped output matches what the browser client sends.
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)
