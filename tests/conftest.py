from __future__ import annotations

from collections.abc import Callable
import json

import pytest

from quiz_live.core.game_controller import GameController
from quiz_live.core.models import Question, Quiz
from quiz_live.core.transport import Transport
from quiz_live.utils.settings import EngineSettings


class ManualTimerHandle:
    def __init__(self, deadline: float, callback: Callable[[], None]) -> None:
        self.deadline = deadline
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualTimers:
    """Timer factory driven by ``advance`` instead of wall-clock time."""

    def __init__(self) -> None:
        self.now = 0.0
        self._handles: list[ManualTimerHandle] = []

    def call_later(self, delay_seconds: float, callback: Callable[[], None]) -> ManualTimerHandle:
        handle = ManualTimerHandle(self.now + delay_seconds, callback)
        self._handles.append(handle)
        return handle

    def pending(self) -> list[ManualTimerHandle]:
        return [h for h in self._handles if not h.cancelled and not h.fired]

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            due = [h for h in self.pending() if h.deadline <= target]
            if not due:
                break
            handle = min(due, key=lambda h: h.deadline)
            self.now = handle.deadline
            handle.fired = True
            handle.callback()
        self.now = target


class RecordingTransport(Transport):
    """Keeps every outbound message per connection; can simulate dead peers."""

    def __init__(self) -> None:
        self.sent: list[tuple[object, dict]] = []
        self.closed: list[object] = []
        self.failing: set[object] = set()

    def send(self, connection: object, message: dict) -> None:
        if connection in self.failing:
            raise ConnectionError(f"{connection} is gone")
        self.sent.append((connection, message))

    def close(self, connection: object) -> None:
        self.closed.append(connection)

    def messages(self, connection: object, kind: str | None = None) -> list[dict]:
        return [
            message
            for target, message in self.sent
            if target == connection and (kind is None or message["type"] == kind)
        ]

    def kinds(self, connection: object) -> list[str]:
        return [message["type"] for message in self.messages(connection)]

    def last(self, connection: object, kind: str) -> dict | None:
        found = self.messages(connection, kind)
        return found[-1] if found else None


def make_question(text: str, correct: int = 0, points: int = 100) -> Question:
    return Question(
        text=text,
        answer_choices=("A", "B", "C", "D"),
        correct_answer_index=correct,
        base_points=points,
    )


@pytest.fixture()
def timers() -> ManualTimers:
    return ManualTimers()


@pytest.fixture()
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture()
def two_question_quiz() -> Quiz:
    return Quiz(
        title="Two Questions",
        time_per_question=10,
        questions=(
            make_question("First?", correct=1, points=100),
            make_question("Second?", correct=2, points=200),
        ),
    )


@pytest.fixture()
def make_controller(transport, timers) -> Callable[..., GameController]:
    def factory(quiz: Quiz, listener=None, session_id: str = "123456") -> GameController:
        return GameController(
            session_id=session_id,
            quiz=quiz,
            transport=transport,
            timers=timers,
            settings=EngineSettings(),
            listener=listener,
        )

    return factory


@pytest.fixture()
def controller(make_controller, two_question_quiz) -> GameController:
    return make_controller(two_question_quiz)


@pytest.fixture()
def quiz_dir(tmp_path):
    directory = tmp_path / "quizzes"
    directory.mkdir()
    (directory / "general.json").write_text(
        json.dumps(
            {
                "title": "General Knowledge",
                "timePerQuestion": 10,
                "questions": [
                    {
                        "question": "Capital of France?",
                        "answers": ["Berlin", "Paris", "Rome", "Madrid"],
                        "correctAnswer": 1,
                        "points": 100,
                    },
                    {
                        "question": "Red planet?",
                        "answers": ["Venus", "Mars", "Jupiter", "Saturn"],
                        "correctAnswer": 1,
                        "points": 200,
                    },
                ],
            }
        ),
        encoding="utf-8",
    )
    return directory


def join(controller: GameController, connection: object, name: str) -> None:
    controller.handle_message(connection, {"type": "join", "playerName": name})


def answer(controller: GameController, connection: object, name: str, choice: int, timestamp: int = 0) -> None:
    controller.handle_message(
        connection,
        {"type": "answer", "playerName": name, "choiceIndex": choice, "timestamp": timestamp},
    )
