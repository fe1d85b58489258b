"""Player-side mirror of the session, driven only by host messages.

The client never decides anything about the game: it tracks what the host
has announced, turns user actions into outbound messages and reports state
changes to a rendering layer through ``PlayerEventListener``.
"""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum
import logging
import time
from typing import Any

from quiz_live.constants.quiz_constants import SESSION_ID_LENGTH
from quiz_live.core.errors import ProtocolError
from quiz_live.core.models import LeaderboardEntry, Quiz
from quiz_live.core.protocol import (
    AnswerMessage,
    ErrorMessage,
    GameOverMessage,
    GameStartingMessage,
    JoinedMessage,
    JoinMessage,
    QuestionMessage,
    RosterChangedMessage,
    RoundResultMessage,
    decode_message,
    encode_message,
)

logger = logging.getLogger(__name__)


class PlayerPhase(str, Enum):
    IDLE = "idle"
    JOINING = "joining"
    LOBBY = "lobby"
    STARTING = "starting"
    ANSWERING = "answering"
    ANSWERED = "answered"
    REVEALED = "revealed"
    FINISHED = "finished"
    REJECTED = "rejected"
    DISCONNECTED = "disconnected"
    LEFT = "left"


class PlayerEventListener:
    """No-op hooks; override the ones a view cares about."""

    def on_phase_changed(self, phase: PlayerPhase) -> None:
        pass

    def on_roster_changed(self, names: list[str]) -> None:
        pass

    def on_question(self, question: QuestionMessage) -> None:
        pass

    def on_round_result(self, correct_index: int, was_correct: bool, leaderboard: list[LeaderboardEntry]) -> None:
        pass

    def on_game_over(self, rank: int | None, score: int, leaderboard: list[LeaderboardEntry]) -> None:
        pass

    def on_error(self, message: str) -> None:
        pass


def _epoch_millis() -> int:
    return int(time.time() * 1000)


class PlayerClient:
    def __init__(
        self,
        player_name: str,
        session_id: str,
        send: Callable[[dict[str, Any]], None],
        close: Callable[[], None] | None = None,
        listener: PlayerEventListener | None = None,
        clock: Callable[[], int] = _epoch_millis,
    ) -> None:
        self._player_name = player_name.strip()
        self._session_id = session_id.strip()
        self._send = send
        self._close = close
        self._listener = listener or PlayerEventListener()
        self._clock = clock

        self._phase = PlayerPhase.IDLE
        self.roster: list[str] = []
        self.quiz_title: str | None = None
        self.question_count = 0
        self.quiz: Quiz | None = None
        self.current_question: QuestionMessage | None = None
        self.selected_choice: int | None = None
        self.last_answer_correct: bool | None = None
        self.leaderboard: list[LeaderboardEntry] = []
        self.final_rank: int | None = None
        self.final_score = 0
        self.error_message: str | None = None

    @property
    def player_name(self) -> str:
        return self._player_name

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def phase(self) -> PlayerPhase:
        return self._phase

    # --- user actions ---

    def join(self) -> None:
        """Validate name and PIN, then ask the host to admit this player."""
        if self._phase is not PlayerPhase.IDLE:
            raise RuntimeError("join() may only be called once per client.")
        if not self._player_name:
            raise ValueError("Player name is required.")
        if len(self._session_id) != SESSION_ID_LENGTH or not self._session_id.isdigit():
            raise ValueError(f"Session PIN must be {SESSION_ID_LENGTH} digits.")
        self._set_phase(PlayerPhase.JOINING)
        self._send(encode_message(JoinMessage(player_name=self._player_name)))

    def submit(self, choice_index: int) -> bool:
        """Send an answer for the current question; returns False if not allowed now."""
        if self._phase is not PlayerPhase.ANSWERING or self.current_question is None:
            return False
        if not 0 <= choice_index < len(self.current_question.choices):
            raise ValueError(f"Choice index {choice_index} is out of range.")
        self.selected_choice = choice_index
        self._send(
            encode_message(
                AnswerMessage(
                    player_name=self._player_name,
                    choice_index=choice_index,
                    timestamp=self._clock(),
                )
            )
        )
        self._set_phase(PlayerPhase.ANSWERED)
        return True

    def leave(self) -> None:
        """Drop out of the session; the host treats the closed connection as a leave."""
        if self._phase in (PlayerPhase.DISCONNECTED, PlayerPhase.LEFT):
            return
        self._set_phase(PlayerPhase.LEFT)
        if self._close is not None:
            self._close()

    def handle_connection_lost(self) -> None:
        if self._phase in (
            PlayerPhase.FINISHED,
            PlayerPhase.REJECTED,
            PlayerPhase.DISCONNECTED,
            PlayerPhase.LEFT,
        ):
            return
        self.error_message = "Connection to host lost"
        self._set_phase(PlayerPhase.DISCONNECTED)
        self._listener.on_error(self.error_message)

    # --- inbound from the host ---

    def handle_message(self, payload: dict[str, Any] | str | bytes) -> None:
        if self._phase is PlayerPhase.LEFT:
            return
        try:
            message = decode_message(payload)
        except ProtocolError as exc:
            logger.warning("Player %r dropped malformed message: %s", self._player_name, exc)
            return
        if message is None:
            return

        if isinstance(message, JoinedMessage):
            self.quiz_title = message.quiz_title
            self.question_count = message.question_count
            self._set_phase(PlayerPhase.LOBBY)
        elif isinstance(message, ErrorMessage):
            self.error_message = message.message
            if self._phase is PlayerPhase.JOINING:
                self._set_phase(PlayerPhase.REJECTED)
            self._listener.on_error(message.message)
        elif isinstance(message, RosterChangedMessage):
            self.roster = list(message.names)
            self._listener.on_roster_changed(self.roster)
        elif isinstance(message, GameStartingMessage):
            self.quiz = message.quiz.to_quiz()
            self._set_phase(PlayerPhase.STARTING)
        elif isinstance(message, QuestionMessage):
            self.current_question = message
            self.selected_choice = None
            self.last_answer_correct = None
            self._set_phase(PlayerPhase.ANSWERING)
            self._listener.on_question(message)
        elif isinstance(message, RoundResultMessage):
            self.leaderboard = _entries(message.leaderboard)
            self.last_answer_correct = self.selected_choice == message.correct_index
            self._set_phase(PlayerPhase.REVEALED)
            self._listener.on_round_result(message.correct_index, self.last_answer_correct, self.leaderboard)
        elif isinstance(message, GameOverMessage):
            self.leaderboard = _entries(message.leaderboard)
            self.final_rank, self.final_score = self._find_standing(self.leaderboard)
            self._set_phase(PlayerPhase.FINISHED)
            self._listener.on_game_over(self.final_rank, self.final_score, self.leaderboard)
        else:
            logger.debug("Player %r ignoring player-bound %r message", self._player_name, message.type)

    def _find_standing(self, leaderboard: list[LeaderboardEntry]) -> tuple[int | None, int]:
        for position, entry in enumerate(leaderboard, start=1):
            if entry.name == self._player_name:
                return position, entry.score
        return None, 0

    def _set_phase(self, phase: PlayerPhase) -> None:
        if phase is self._phase:
            return
        self._phase = phase
        self._listener.on_phase_changed(phase)


def _entries(rows) -> list[LeaderboardEntry]:
    return [LeaderboardEntry(name=row.name, score=row.score) for row in rows]
