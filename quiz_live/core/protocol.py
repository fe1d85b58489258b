"""Wire messages exchanged between the host and each player.

Every message is a self-contained JSON object whose ``type`` field names its
kind. Field names travel in camelCase (``playerName``, ``choiceIndex``) while
the Python models use snake_case.
"""

from __future__ import annotations

from collections.abc import Mapping
import json
import logging
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError
from pydantic.alias_generators import to_camel

from quiz_live.core.errors import ProtocolError
from quiz_live.core.models import LeaderboardEntry, Question, Quiz

logger = logging.getLogger(__name__)


class ProtocolModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class QuestionPayload(ProtocolModel):
    text: str
    answer_choices: list[str]
    correct_answer_index: int
    base_points: int


class QuizPayload(ProtocolModel):
    title: str
    time_per_question: int
    questions: list[QuestionPayload]

    @classmethod
    def from_quiz(cls, quiz: Quiz) -> "QuizPayload":
        return cls(
            title=quiz.title,
            time_per_question=quiz.time_per_question,
            questions=[
                QuestionPayload(
                    text=q.text,
                    answer_choices=list(q.answer_choices),
                    correct_answer_index=q.correct_answer_index,
                    base_points=q.base_points,
                )
                for q in quiz.questions
            ],
        )

    def to_quiz(self) -> Quiz:
        return Quiz(
            title=self.title,
            time_per_question=self.time_per_question,
            questions=tuple(
                Question(
                    text=q.text,
                    answer_choices=tuple(q.answer_choices),
                    correct_answer_index=q.correct_answer_index,
                    base_points=q.base_points,
                )
                for q in self.questions
            ),
        )


class LeaderboardRow(ProtocolModel):
    name: str
    score: int


def leaderboard_rows(entries: list[LeaderboardEntry] | tuple[LeaderboardEntry, ...]) -> list[LeaderboardRow]:
    return [LeaderboardRow(name=entry.name, score=entry.score) for entry in entries]


# --- player -> host ---


class JoinMessage(ProtocolModel):
    type: Literal["join"] = "join"
    player_name: str


class AnswerMessage(ProtocolModel):
    type: Literal["answer"] = "answer"
    player_name: str
    choice_index: int
    timestamp: int


# --- host -> player(s) ---


class JoinedMessage(ProtocolModel):
    type: Literal["joined"] = "joined"
    quiz_title: str
    question_count: int


class ErrorMessage(ProtocolModel):
    type: Literal["error"] = "error"
    message: str


class RosterChangedMessage(ProtocolModel):
    type: Literal["rosterChanged"] = "rosterChanged"
    names: list[str]


class GameStartingMessage(ProtocolModel):
    type: Literal["gameStarting"] = "gameStarting"
    quiz: QuizPayload


class QuestionMessage(ProtocolModel):
    type: Literal["question"] = "question"
    index: int
    total: int
    text: str
    choices: list[str]
    time_limit_seconds: int


class RoundResultMessage(ProtocolModel):
    type: Literal["roundResult"] = "roundResult"
    correct_index: int
    leaderboard: list[LeaderboardRow]


class GameOverMessage(ProtocolModel):
    type: Literal["gameOver"] = "gameOver"
    leaderboard: list[LeaderboardRow]


Message = Annotated[
    Union[
        JoinMessage,
        AnswerMessage,
        JoinedMessage,
        ErrorMessage,
        RosterChangedMessage,
        GameStartingMessage,
        QuestionMessage,
        RoundResultMessage,
        GameOverMessage,
    ],
    Field(discriminator="type"),
]

_MESSAGE_ADAPTER: TypeAdapter[Message] = TypeAdapter(Message)

KNOWN_KINDS: frozenset[str] = frozenset(
    {
        "join",
        "answer",
        "joined",
        "error",
        "rosterChanged",
        "gameStarting",
        "question",
        "roundResult",
        "gameOver",
    }
)


def encode_message(message: ProtocolModel) -> dict[str, Any]:
    """Serialize a message to a JSON-compatible dict using wire field names."""
    return message.model_dump(by_alias=True, mode="json")


def decode_message(payload: Mapping[str, Any] | str | bytes) -> Message | None:
    """Parse an inbound payload.

    Returns ``None`` for payloads without a recognised ``type`` so callers can
    ignore unknown kinds. Raises ``ProtocolError`` when the payload is not a
    JSON object or a known kind carries invalid fields.
    """
    if isinstance(payload, (str, bytes)):
        try:
            payload = json.loads(payload)
        except ValueError as exc:
            raise ProtocolError("Message is not valid JSON.") from exc
    if not isinstance(payload, Mapping):
        raise ProtocolError("Message must be a JSON object.")

    kind = payload.get("type")
    if not isinstance(kind, str) or kind not in KNOWN_KINDS:
        logger.debug("Ignoring message of unknown kind %r", kind)
        return None
    try:
        return _MESSAGE_ADAPTER.validate_python(dict(payload))
    except ValidationError as exc:
        raise ProtocolError(f"Invalid {kind!r} message: {exc.error_count()} field error(s).") from exc
