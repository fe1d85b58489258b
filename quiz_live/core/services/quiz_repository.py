"""Service listing and loading the quizzes stored in a directory."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from pathlib import Path

from quiz_live.core.errors import QuizLoadError
from quiz_live.core.models import Quiz
from quiz_live.core.quiz_importer import load_quiz_from_file

logger = logging.getLogger(__name__)

_SUPPORTED_SUFFIXES = (".json", ".txt")


@dataclass(frozen=True, slots=True)
class QuizListing:
    key: str
    title: str
    question_count: int


class QuizCatalog:
    """Directory-backed quiz source; keys are bare file names."""

    def __init__(self, directory: Path) -> None:
        self._directory = Path(directory)

    @property
    def directory(self) -> Path:
        return self._directory

    def list_quizzes(self) -> list[QuizListing]:
        """Return every loadable quiz; broken files are logged and skipped."""
        if not self._directory.is_dir():
            logger.warning("Quiz directory %s does not exist", self._directory)
            return []
        listings: list[QuizListing] = []
        for path in sorted(self._directory.iterdir()):
            if not path.is_file() or path.suffix.lower() not in _SUPPORTED_SUFFIXES:
                continue
            try:
                quiz = load_quiz_from_file(path)
            except QuizLoadError as exc:
                logger.warning("Skipping quiz %s: %s", path.name, exc)
                continue
            listings.append(QuizListing(key=path.name, title=quiz.title, question_count=quiz.question_count))
        return listings

    def load(self, key: str) -> Quiz:
        return load_quiz_from_file(self._resolve(key))

    def _resolve(self, key: str) -> Path:
        if not key or Path(key).name != key or key in (".", ".."):
            raise QuizLoadError(f"Invalid quiz key: {key!r}")
        path = self._directory / key
        if path.suffix.lower() not in _SUPPORTED_SUFFIXES:
            raise QuizLoadError(f"Unsupported quiz file type: {key!r}")
        if not path.is_file():
            raise QuizLoadError(f"Quiz {key!r} not found.")
        return path
