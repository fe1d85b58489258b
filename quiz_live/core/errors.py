"""Exceptions raised by the quiz engine."""

from __future__ import annotations


class QuizEngineError(Exception):
    """Base class for all engine errors."""


class DuplicateNameError(QuizEngineError):
    """Raised when a player tries to join with a name already in the session."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Name already taken: {name!r}")
        self.name = name


class InsufficientPlayersError(QuizEngineError):
    """Raised when the host starts a game before anyone has joined."""


class InvalidTransitionError(QuizEngineError):
    """Raised when a host action is not valid in the current game status."""


class QuizLoadError(QuizEngineError):
    """Raised when a quiz definition cannot be loaded or parsed."""


class SessionNotFoundError(QuizEngineError):
    """Raised when no session exists for the given identifier."""


class ProtocolError(QuizEngineError):
    """Raised when an inbound message of a known kind is malformed."""


class TransportError(QuizEngineError):
    """Raised when the transport cannot deliver to a connection at all."""
