"""Transport capability consumed by the game controller."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable
import logging
from typing import Any

logger = logging.getLogger(__name__)


class Transport(ABC):
    """Delivers encoded messages to player connections.

    Implementations must not block the caller: the controller invokes them
    while holding the session lock.
    """

    @abstractmethod
    def send(self, connection: object, message: dict[str, Any]) -> None:
        """Queue ``message`` for delivery on ``connection``."""

    @abstractmethod
    def close(self, connection: object) -> None:
        """Close ``connection``; closing an already closed connection is a no-op."""


def broadcast(transport: Transport, connections: Iterable[object], message: dict[str, Any]) -> int:
    """Send ``message`` to every connection and return how many sends succeeded.

    Each send is attempted independently; a failure is logged and the loop
    carries on with the remaining recipients.
    """
    delivered = 0
    for connection in connections:
        try:
            transport.send(connection, message)
        except Exception:
            logger.warning(
                "Failed to send %s message to %r", message.get("type"), connection, exc_info=True
            )
            continue
        delivered += 1
    return delivered
