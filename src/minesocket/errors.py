"""Exceptions raised by the minesocket client."""

from __future__ import annotations


class GameError(Exception):
    """Base class for every error the client reports to its caller."""


class InvalidInput(GameError):
    """A user command could not be turned into a protocol action."""


class NoGame(GameError):
    """There is no game that accepts clicks right now."""


class Mismatch(GameError):
    """Server data disagrees with the local board (game id or sequence)."""


class MalformedFrame(GameError):
    """An inbound frame or payload could not be decoded."""


class NotConnected(GameError):
    """An outbound action was issued without an open push channel."""


class HandshakeFailed(GameError):
    """The connection handshake did not reach the ready state."""


class AuthorizationFailed(HandshakeFailed):
    """The server refused to authorize the polling session id."""


class HandshakeTimeout(HandshakeFailed):
    """The handshake did not complete within the configured bound."""
