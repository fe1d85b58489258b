"""Domain models for the live quiz engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class GameStatus(str, Enum):
    """Lifecycle of a hosted session as seen by the host."""

    LOBBY = "lobby"
    STARTING = "starting"
    IN_ROUND = "in_round"
    ROUND_CLOSED = "round_closed"
    FINISHED = "finished"


@dataclass(frozen=True, slots=True)
class Question:
    """Multiple-choice question with a fixed set of answer choices."""

    text: str
    answer_choices: tuple[str, ...]
    correct_answer_index: int
    base_points: int


@dataclass(frozen=True, slots=True)
class Quiz:
    """Immutable quiz definition shared by reference between rounds."""

    title: str
    time_per_question: int
    questions: tuple[Question, ...]

    @property
    def question_count(self) -> int:
        return len(self.questions)


@dataclass(slots=True)
class Player:
    """A joined player and the connection the host reaches them on."""

    name: str
    connection: object
    score: int = 0


@dataclass(frozen=True, slots=True)
class AnswerRecord:
    """First accepted submission of a player within one round."""

    player_name: str
    chosen_index: int
    submitted_at_ms: int


@dataclass(frozen=True, slots=True)
class LeaderboardEntry:
    name: str
    score: int


@dataclass(frozen=True, slots=True)
class RoundResult:
    """Outcome of a closed round, derived once when the round closes."""

    question_index: int
    correct_answer_index: int
    leaderboard: tuple[LeaderboardEntry, ...]
    awarded_points: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class SessionSnapshot:
    """Read-only projection of a session for the host surface."""

    session_id: str
    status: GameStatus
    quiz_title: str
    question_count: int
    round_index: int
    players: tuple[LeaderboardEntry, ...]
    remaining_seconds: int | None = None
    answered_count: int = 0
    expected_count: int = 0
    last_result: RoundResult | None = None
