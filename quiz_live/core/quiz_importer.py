"""Utilities for loading quiz definitions from disk.

Two formats are accepted.

JSON (``.json``)::

    {
      "title": "General Knowledge",
      "timePerQuestion": 20,
      "questions": [
        {"question": "Capital of France?",
         "answers": ["Berlin", "Paris", "Rome", "Madrid"],
         "correctAnswer": 1,
         "points": 1000}
      ]
    }

Plain text (``.txt``), blocks separated by blank lines or ``---``. The first
block is the header; every other block is one question::

    TITLE: General Knowledge
    TIMELIMIT: 20

    Q: Capital of France?
    A: Berlin
    B: Paris
    C: Rome
    D: Madrid
    CORRECT: B
    POINTS: 1000   (optional, defaults to 1000)
"""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from quiz_live.constants.quiz_constants import (
    CHOICES_PER_QUESTION,
    DEFAULT_BASE_POINTS,
    DEFAULT_TIME_LIMIT_SECONDS,
)
from quiz_live.core.errors import QuizLoadError
from quiz_live.core.models import Question, Quiz

_OPTION_ORDER = ["A", "B", "C", "D"]


class _QuestionDocument(BaseModel):
    question: str = Field(min_length=1)
    answers: list[str] = Field(min_length=CHOICES_PER_QUESTION, max_length=CHOICES_PER_QUESTION)
    correct_answer: int = Field(alias="correctAnswer", ge=0, lt=CHOICES_PER_QUESTION)
    points: int = Field(default=DEFAULT_BASE_POINTS, gt=0)


class _QuizDocument(BaseModel):
    title: str = Field(min_length=1)
    time_per_question: int = Field(alias="timePerQuestion", default=DEFAULT_TIME_LIMIT_SECONDS, gt=0)
    questions: list[_QuestionDocument] = Field(min_length=1)


def load_quiz_from_file(file_path: Path) -> Quiz:
    """Load a quiz from ``.json`` or ``.txt``; raises ``QuizLoadError`` on any failure."""
    file_path = Path(file_path)
    try:
        text = file_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise QuizLoadError(f"Could not read quiz file {file_path}: {exc.strerror or exc}") from exc

    suffix = file_path.suffix.lower()
    if suffix == ".json":
        return parse_quiz_json(text)
    if suffix == ".txt":
        return parse_quiz_text(text)
    raise QuizLoadError(f"Unsupported quiz file type: {file_path.suffix or '(none)'}")


def parse_quiz_json(text: str) -> Quiz:
    try:
        raw = json.loads(text)
    except ValueError as exc:
        raise QuizLoadError(f"Quiz file is not valid JSON: {exc}") from exc
    try:
        document = _QuizDocument.model_validate(raw)
    except ValidationError as exc:
        first = exc.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        raise QuizLoadError(f"Invalid quiz definition at {location or 'root'}: {first['msg']}") from exc

    questions = tuple(
        _build_question(q.question, q.answers, q.correct_answer, q.points) for q in document.questions
    )
    return Quiz(
        title=document.title.strip(),
        time_per_question=document.time_per_question,
        questions=questions,
    )


def parse_quiz_text(text: str) -> Quiz:
    blocks = _split_blocks(text)
    if not blocks:
        raise QuizLoadError("Quiz file is empty.")

    header, question_blocks = blocks[0], blocks[1:]
    title, time_limit = _parse_header(header)
    if not question_blocks:
        raise QuizLoadError("Quiz file did not contain any questions.")
    return Quiz(
        title=title,
        time_per_question=time_limit,
        questions=tuple(_parse_block(block) for block in question_blocks),
    )


def _split_blocks(text: str) -> list[str]:
    blocks: list[str] = []
    current_block: list[str] = []
    for raw_line in text.splitlines():
        stripped = raw_line.strip()
        if stripped == "---":
            if current_block:
                blocks.append("\n".join(current_block).strip())
                current_block = []
            continue
        if stripped:
            current_block.append(raw_line)
        elif current_block:
            # Blank line encountered after content - finalize current block
            blocks.append("\n".join(current_block).strip())
            current_block = []
    if current_block:
        blocks.append("\n".join(current_block).strip())
    return [block for block in blocks if block]


def _parse_header(block: str) -> tuple[str, int]:
    title: str | None = None
    time_limit = DEFAULT_TIME_LIMIT_SECONDS
    for raw_line in block.splitlines():
        line = raw_line.strip()
        upper = line.upper()
        if upper.startswith("TITLE:"):
            title = line.split(":", 1)[1].strip()
        elif upper.startswith("TIMELIMIT:"):
            time_limit = _parse_positive_int(line, "TIMELIMIT")
        else:
            raise QuizLoadError(f"Unexpected line in quiz header: '{line}'.")
    if not title:
        raise QuizLoadError("Quiz header must define a TITLE.")
    return title, time_limit


def _parse_block(block: str) -> Question:
    question_lines: list[str] = []
    options: dict[str, str] = {}
    correct_letter: str | None = None
    points = DEFAULT_BASE_POINTS
    current_section: str | None = None

    for raw_line in block.splitlines():
        line = raw_line.strip()
        if not line:
            continue

        upper = line.upper()
        if upper.startswith("Q:"):
            question_lines = [line[2:].strip()]
            current_section = "Q"
            continue

        if upper.startswith("CORRECT:"):
            correct_letter = line.split(":", 1)[1].strip().upper()
            current_section = None
            continue

        if upper.startswith("POINTS:"):
            points = _parse_positive_int(line, "POINTS")
            current_section = None
            continue

        if len(line) > 2 and line[0].upper() in _OPTION_ORDER and line[1] == ":":
            letter = line[0].upper()
            options[letter] = line[2:].strip()
            current_section = letter
            continue

        if current_section == "Q":
            question_lines.append(line)
        elif current_section in _OPTION_ORDER:
            options[current_section] = options[current_section] + f"\n{line}"
        else:
            raise QuizLoadError(f"Encountered text outside of a known section: '{line}'.")

    if not question_lines:
        raise QuizLoadError("Question text missing (Q: ...)")
    if len(options) != CHOICES_PER_QUESTION:
        raise QuizLoadError("Each question must define exactly four options (A-D).")
    if correct_letter is None:
        raise QuizLoadError("Each question must define its CORRECT option.")
    if correct_letter not in _OPTION_ORDER:
        raise QuizLoadError("CORRECT must be one of A, B, C, or D.")

    return _build_question(
        "\n".join(question_lines),
        [options[letter] for letter in _OPTION_ORDER],
        _OPTION_ORDER.index(correct_letter),
        points,
    )


def _build_question(text: str, answers: list[str], correct_index: int, points: int) -> Question:
    cleaned_text = text.strip()
    if not cleaned_text:
        raise QuizLoadError("Question text cannot be empty.")
    cleaned_answers = tuple(answer.strip() for answer in answers)
    if any(not answer for answer in cleaned_answers):
        raise QuizLoadError("Option text cannot be empty.")
    return Question(
        text=cleaned_text,
        answer_choices=cleaned_answers,
        correct_answer_index=correct_index,
        base_points=points,
    )


def _parse_positive_int(line: str, key: str) -> int:
    raw_value = line.split(":", 1)[1].strip()
    if not raw_value:
        raise QuizLoadError(f"{key} must include an integer value.")
    try:
        parsed_value = int(raw_value)
    except ValueError as exc:
        raise QuizLoadError(f"{key} must be an integer.") from exc
    if parsed_value <= 0:
        raise QuizLoadError(f"{key} must be a positive integer.")
    return parsed_value
