"""Quiz-related constants shared across the engine and server layers."""

DEFAULT_TIME_LIMIT_SECONDS: int = 20
DEFAULT_BASE_POINTS: int = 1000
CHOICES_PER_QUESTION: int = 4
TIME_BONUS_POINTS: int = 500

GRACE_CLOSE_SECONDS: float = 1.0
GAME_START_DELAY_SECONDS: float = 2.0
TICK_INTERVAL_SECONDS: float = 1.0

SESSION_ID_LENGTH: int = 6
DEFAULT_QUIZ_DIRECTORY: str = "quizzes"
