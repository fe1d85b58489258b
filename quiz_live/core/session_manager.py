"""Registry of independent live sessions keyed by their PIN."""

from __future__ import annotations

import logging
from threading import Lock

from quiz_live.core.errors import SessionNotFoundError
from quiz_live.core.events import SessionListener
from quiz_live.core.game_controller import GameController
from quiz_live.core.models import Quiz
from quiz_live.core.session_ids import SessionIdGenerator
from quiz_live.core.timers import ThreadingTimerFactory, TimerFactory
from quiz_live.core.transport import Transport
from quiz_live.utils.settings import EngineSettings

logger = logging.getLogger(__name__)


class SessionManager:
    """Creates, looks up and tears down game sessions.

    Sessions share nothing but the transport and timer factory; each one is a
    separate ``GameController`` with its own lock.
    """

    def __init__(
        self,
        transport: Transport,
        timers: TimerFactory | None = None,
        settings: EngineSettings | None = None,
        id_generator: SessionIdGenerator | None = None,
    ) -> None:
        self._transport = transport
        self._timers = timers or ThreadingTimerFactory()
        self._settings = settings or EngineSettings()
        self._ids = id_generator or SessionIdGenerator()
        self._sessions: dict[str, GameController] = {}
        self._lock = Lock()

    def create_session(self, quiz: Quiz, listener: SessionListener | None = None) -> GameController:
        with self._lock:
            session_id = self._ids.next_id(self._sessions.keys())
            controller = GameController(
                session_id=session_id,
                quiz=quiz,
                transport=self._transport,
                timers=self._timers,
                settings=self._settings,
                listener=listener,
            )
            self._sessions[session_id] = controller
        logger.info("Created session %s for quiz %r", session_id, quiz.title)
        return controller

    def get(self, session_id: str) -> GameController:
        with self._lock:
            controller = self._sessions.get(session_id)
        if controller is None:
            raise SessionNotFoundError(f"No session with id {session_id!r}.")
        return controller

    def list_sessions(self) -> list[GameController]:
        with self._lock:
            return list(self._sessions.values())

    def end_session(self, session_id: str) -> None:
        with self._lock:
            controller = self._sessions.pop(session_id, None)
        if controller is None:
            raise SessionNotFoundError(f"No session with id {session_id!r}.")
        controller.shutdown()
        logger.info("Ended session %s", session_id)

    def shutdown_all(self) -> None:
        with self._lock:
            controllers = list(self._sessions.values())
            self._sessions.clear()
        for controller in controllers:
            controller.shutdown()
