"""Service for tracking joined players and their running scores."""

from __future__ import annotations

from collections.abc import Callable

from quiz_live.core.errors import DuplicateNameError
from quiz_live.core.models import LeaderboardEntry, Player

RosterListener = Callable[[list[str]], None]


class SessionRegistry:
    """Holds the players of one session in join order."""

    def __init__(self, on_roster_changed: RosterListener | None = None) -> None:
        self._players: dict[str, Player] = {}
        self._on_roster_changed = on_roster_changed

    def join(self, name: str, connection: object) -> Player:
        """Register a player; names are matched exactly (case-sensitive)."""
        if name in self._players:
            raise DuplicateNameError(name)
        player = Player(name=name, connection=connection)
        self._players[name] = player
        self._notify()
        return player

    def leave(self, name: str) -> Player | None:
        player = self._players.pop(name, None)
        if player is not None:
            self._notify()
        return player

    def add_score(self, name: str, delta: int) -> None:
        """Add points to a player; players who already left are skipped."""
        if delta < 0:
            raise ValueError("Score delta must not be negative.")
        player = self._players.get(name)
        if player is None:
            return
        player.score += delta

    def names(self) -> list[str]:
        return list(self._players)

    def players(self) -> list[Player]:
        return list(self._players.values())

    def snapshot(self) -> list[LeaderboardEntry]:
        """Return (name, score) rows in join order."""
        return [LeaderboardEntry(name=p.name, score=p.score) for p in self._players.values()]

    def __len__(self) -> int:
        return len(self._players)

    def _notify(self) -> None:
        if self._on_roster_changed is not None:
            self._on_roster_changed(self.names())
