"""Runtime settings with environment overrides.

Defaults live in ``quiz_live.constants``; any value can be overridden with a
``QUIZ_LIVE_*`` environment variable, e.g. ``QUIZ_LIVE_PORT=9000``.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
import os
from pathlib import Path

from quiz_live.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from quiz_live.constants.quiz_constants import (
    DEFAULT_QUIZ_DIRECTORY,
    GAME_START_DELAY_SECONDS,
    GRACE_CLOSE_SECONDS,
    TICK_INTERVAL_SECONDS,
)

_PREFIX = "QUIZ_LIVE_"


@dataclass(frozen=True, slots=True)
class EngineSettings:
    """Timing knobs of the session engine."""

    grace_close_seconds: float = GRACE_CLOSE_SECONDS
    start_delay_seconds: float = GAME_START_DELAY_SECONDS
    tick_interval_seconds: float = TICK_INTERVAL_SECONDS

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "EngineSettings":
        env = os.environ if environ is None else environ
        return cls(
            grace_close_seconds=_read_float(env, "GRACE_SECONDS", GRACE_CLOSE_SECONDS),
            start_delay_seconds=_read_float(env, "START_DELAY_SECONDS", GAME_START_DELAY_SECONDS),
            tick_interval_seconds=_read_float(env, "TICK_SECONDS", TICK_INTERVAL_SECONDS),
        )


@dataclass(frozen=True, slots=True)
class ServerSettings:
    """Where the HTTP/WebSocket server listens and finds quizzes."""

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    quiz_directory: Path = field(default_factory=lambda: Path(DEFAULT_QUIZ_DIRECTORY))
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "ServerSettings":
        env = os.environ if environ is None else environ
        port = _read_int(env, "PORT", DEFAULT_PORT)
        if not 0 < port < 65536:
            raise ValueError(f"{_PREFIX}PORT must be a valid TCP port, got {port}.")
        return cls(
            host=env.get(f"{_PREFIX}HOST", DEFAULT_HOST),
            port=port,
            quiz_directory=Path(env.get(f"{_PREFIX}QUIZ_DIR", DEFAULT_QUIZ_DIRECTORY)),
            log_level=env.get(f"{_PREFIX}LOG_LEVEL", "INFO").upper(),
        )


def _read_int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(f"{_PREFIX}{key}")
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{_PREFIX}{key} must be an integer, got {raw!r}.") from exc


def _read_float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(f"{_PREFIX}{key}")
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise ValueError(f"{_PREFIX}{key} must be a number, got {raw!r}.") from exc
    if value < 0:
        raise ValueError(f"{_PREFIX}{key} must not be negative.")
    return value
