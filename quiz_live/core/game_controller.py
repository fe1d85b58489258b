"""Host-side state machine that owns one quiz session."""

from __future__ import annotations

import logging
from threading import RLock
from typing import Any

from quiz_live.core.errors import (
    DuplicateNameError,
    InsufficientPlayersError,
    InvalidTransitionError,
    ProtocolError,
)
from quiz_live.core.events import SessionListener
from quiz_live.core.models import GameStatus, LeaderboardEntry, Quiz, RoundResult, SessionSnapshot
from quiz_live.core.protocol import (
    AnswerMessage,
    ErrorMessage,
    GameOverMessage,
    GameStartingMessage,
    JoinedMessage,
    JoinMessage,
    ProtocolModel,
    QuestionMessage,
    QuizPayload,
    RosterChangedMessage,
    RoundResultMessage,
    decode_message,
    encode_message,
    leaderboard_rows,
)
from quiz_live.core.services.round_scheduler import RoundClosure, RoundScheduler, SubmissionStatus
from quiz_live.core.services.scoring import build_leaderboard, score_answers
from quiz_live.core.services.session_registry import SessionRegistry
from quiz_live.core.timers import TimerFactory, TimerHandle
from quiz_live.core.transport import Transport, broadcast
from quiz_live.utils.settings import EngineSettings

logger = logging.getLogger(__name__)

NAME_TAKEN_MESSAGE = "Name already taken"
SESSION_ENDED_MESSAGE = "Session ended by host"


class GameController:
    """Single writer of a session's state.

    Inbound messages, disconnects, timer callbacks and host actions all pass
    through ``self._lock``, so registry and round state are never mutated
    concurrently.
    """

    def __init__(
        self,
        session_id: str,
        quiz: Quiz,
        transport: Transport,
        timers: TimerFactory,
        settings: EngineSettings | None = None,
        listener: SessionListener | None = None,
    ) -> None:
        self._lock = RLock()
        self._session_id = session_id
        self._quiz = quiz
        self._transport = transport
        self._timers = timers
        self._settings = settings or EngineSettings()
        self._listener = listener or SessionListener()

        self._registry = SessionRegistry(on_roster_changed=self._queue_roster)
        self._names_by_connection: dict[object, str] = {}
        self._connections: set[object] = set()
        self._status = GameStatus.LOBBY
        self._round_index = -1
        self._scheduler: RoundScheduler | None = None
        self._last_result: RoundResult | None = None
        self._start_timer: TimerHandle | None = None
        self._generation = 0
        self._pending_roster: list[str] | None = None
        self._shut_down = False

    # --- read-only views ---

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def quiz(self) -> Quiz:
        return self._quiz

    @property
    def status(self) -> GameStatus:
        with self._lock:
            return self._status

    @property
    def round_index(self) -> int:
        with self._lock:
            return self._round_index

    @property
    def is_shut_down(self) -> bool:
        with self._lock:
            return self._shut_down

    def roster(self) -> list[str]:
        with self._lock:
            return self._registry.names()

    def leaderboard(self) -> list[LeaderboardEntry]:
        with self._lock:
            return build_leaderboard(self._registry.snapshot())

    def last_result(self) -> RoundResult | None:
        with self._lock:
            return self._last_result

    def snapshot(self) -> SessionSnapshot:
        with self._lock:
            scheduler = self._scheduler
            in_round = self._status is GameStatus.IN_ROUND and scheduler is not None
            return SessionSnapshot(
                session_id=self._session_id,
                status=self._status,
                quiz_title=self._quiz.title,
                question_count=self._quiz.question_count,
                round_index=self._round_index,
                players=tuple(self._registry.snapshot()),
                remaining_seconds=scheduler.remaining_seconds if in_round else None,
                answered_count=scheduler.answered_count() if in_round else 0,
                expected_count=scheduler.participant_count() if in_round else 0,
                last_result=self._last_result,
            )

    # --- inbound from the transport ---

    def handle_message(self, connection: object, payload: dict[str, Any] | str | bytes) -> None:
        with self._lock:
            if self._shut_down:
                return
            self._connections.add(connection)
            try:
                message = decode_message(payload)
            except ProtocolError as exc:
                logger.warning("Session %s dropped malformed message: %s", self._session_id, exc)
                return

            if message is None:
                return
            if isinstance(message, JoinMessage):
                self._handle_join(connection, message)
            elif isinstance(message, AnswerMessage):
                self._handle_answer(connection, message)
            else:
                logger.debug("Session %s ignoring host-bound %r message", self._session_id, message.type)
            self._flush_roster()

    def handle_disconnect(self, connection: object) -> None:
        """Treat a lost connection as an implicit leave."""
        with self._lock:
            self._connections.discard(connection)
            name = self._names_by_connection.pop(connection, None)
            if name is None or self._shut_down:
                return
            self._registry.leave(name)
            logger.info("Player %r left session %s", name, self._session_id)
            if self._scheduler is not None and self._status is GameStatus.IN_ROUND:
                self._scheduler.remove_participant(name)
            self._flush_roster()

    # --- host actions ---

    def start_game(self) -> None:
        with self._lock:
            if self._status is not GameStatus.LOBBY or self._shut_down:
                raise InvalidTransitionError(f"Cannot start a game in status {self._status.value!r}.")
            if len(self._registry) == 0:
                raise InsufficientPlayersError("Need at least 1 player to start.")

            self._status = GameStatus.STARTING
            logger.info(
                "Session %s starting with %d player(s)", self._session_id, len(self._registry)
            )
            self._broadcast(GameStartingMessage(quiz=QuizPayload.from_quiz(self._quiz)))
            self._start_timer = self._timers.call_later(
                self._settings.start_delay_seconds, self._guarded(self._begin_first_question)
            )

    def advance(self) -> None:
        """Move from a scored round to the next question or the final results."""
        with self._lock:
            if self._status is not GameStatus.ROUND_CLOSED or self._shut_down:
                raise InvalidTransitionError(f"Cannot advance in status {self._status.value!r}.")
            next_index = self._round_index + 1
            if next_index >= self._quiz.question_count:
                self._finish()
            else:
                self._enter_question(next_index)

    def shutdown(self) -> None:
        """Cancel every pending timer and close all player connections."""
        with self._lock:
            if self._shut_down:
                return
            self._shut_down = True
            self._generation += 1
            if self._start_timer is not None:
                self._start_timer.cancel()
                self._start_timer = None
            if self._scheduler is not None:
                self._scheduler.cancel()

            connections = list(self._connections)
            self._broadcast(ErrorMessage(message=SESSION_ENDED_MESSAGE), connections)
            for connection in connections:
                try:
                    self._transport.close(connection)
                except Exception:
                    logger.warning("Failed to close connection %r", connection, exc_info=True)
            self._connections.clear()
            self._names_by_connection.clear()
            logger.info("Session %s shut down", self._session_id)

    # --- message handlers ---

    def _handle_join(self, connection: object, message: JoinMessage) -> None:
        if self._status is GameStatus.FINISHED:
            logger.debug("Session %s finished; ignoring join", self._session_id)
            return
        existing = self._names_by_connection.get(connection)
        if existing is not None:
            self._send(connection, ErrorMessage(message=f"Already joined as {existing}"))
            return
        name = message.player_name.strip()
        if not name:
            self._send(connection, ErrorMessage(message="Name is required"))
            return

        try:
            self._registry.join(name, connection)
        except DuplicateNameError:
            logger.info("Session %s rejected duplicate name %r", self._session_id, name)
            self._send(connection, ErrorMessage(message=NAME_TAKEN_MESSAGE))
            return

        self._names_by_connection[connection] = name
        logger.info("Player %r joined session %s", name, self._session_id)
        self._send(
            connection,
            JoinedMessage(quiz_title=self._quiz.title, question_count=self._quiz.question_count),
        )

    def _handle_answer(self, connection: object, message: AnswerMessage) -> None:
        name = self._names_by_connection.get(connection)
        if name is None:
            logger.debug("Session %s ignoring answer from unjoined connection", self._session_id)
            return
        if message.player_name.strip() != name:
            logger.warning(
                "Session %s dropping answer for %r sent on %r's connection",
                self._session_id,
                message.player_name,
                name,
            )
            return
        if self._status is not GameStatus.IN_ROUND or self._scheduler is None:
            logger.debug("Session %s rejected answer from %r: %s", self._session_id, name, SubmissionStatus.ROUND_NOT_OPEN.value)
            return

        question = self._quiz.questions[self._round_index]
        if not 0 <= message.choice_index < len(question.answer_choices):
            logger.warning("Session %s dropping out-of-range choice %d from %r", self._session_id, message.choice_index, name)
            return

        status = self._scheduler.submit(name, message.choice_index, message.timestamp)
        if status is not SubmissionStatus.ACCEPTED:
            logger.debug("Session %s rejected answer from %r: %s", self._session_id, name, status.value)
            return
        logger.info("Session %s accepted answer from %r", self._session_id, name)
        self._listener.on_submission(self._scheduler.answered_count(), self._scheduler.participant_count())

    # --- round lifecycle ---

    def _begin_first_question(self) -> None:
        self._start_timer = None
        self._enter_question(0)

    def _enter_question(self, index: int) -> None:
        question = self._quiz.questions[index]
        time_limit = self._quiz.time_per_question
        self._round_index = index
        self._last_result = None
        self._scheduler = RoundScheduler(
            time_limit_seconds=time_limit,
            timers=self._timers,
            lock=self._lock,
            participants=self._registry.names(),
            on_close=self._on_round_closed,
            on_tick=self._listener.on_tick,
            grace_seconds=self._settings.grace_close_seconds,
            tick_seconds=self._settings.tick_interval_seconds,
        )
        self._status = GameStatus.IN_ROUND
        logger.info(
            "Session %s opened question %d/%d", self._session_id, index + 1, self._quiz.question_count
        )
        self._broadcast(
            QuestionMessage(
                index=index,
                total=self._quiz.question_count,
                text=question.text,
                choices=list(question.answer_choices),
                time_limit_seconds=time_limit,
            )
        )
        self._listener.on_round_opened(index, question, time_limit)
        self._scheduler.open()

    def _on_round_closed(self, closure: RoundClosure) -> None:
        question = self._quiz.questions[self._round_index]
        awarded = score_answers(
            question, closure.answers, closure.remaining_seconds, self._quiz.time_per_question
        )
        for name, points in awarded.items():
            self._registry.add_score(name, points)

        leaderboard = build_leaderboard(self._registry.snapshot())
        result = RoundResult(
            question_index=self._round_index,
            correct_answer_index=question.correct_answer_index,
            leaderboard=tuple(leaderboard),
            awarded_points=awarded,
        )
        self._last_result = result
        self._status = GameStatus.ROUND_CLOSED
        logger.info(
            "Session %s closed question %d with %d answer(s), %ds remaining",
            self._session_id,
            self._round_index + 1,
            len(closure.answers),
            closure.remaining_seconds,
        )
        self._broadcast(
            RoundResultMessage(
                correct_index=question.correct_answer_index,
                leaderboard=leaderboard_rows(leaderboard),
            )
        )
        self._listener.on_round_result(result)

    def _finish(self) -> None:
        self._status = GameStatus.FINISHED
        self._scheduler = None
        leaderboard = build_leaderboard(self._registry.snapshot())
        logger.info("Session %s finished", self._session_id)
        self._broadcast(GameOverMessage(leaderboard=leaderboard_rows(leaderboard)))
        self._listener.on_game_over(leaderboard)

    # --- outbound helpers ---

    def _queue_roster(self, names: list[str]) -> None:
        self._pending_roster = names

    def _flush_roster(self) -> None:
        names = self._pending_roster
        if names is None:
            return
        self._pending_roster = None
        self._broadcast(RosterChangedMessage(names=names))
        self._listener.on_roster_changed(names)

    def _send(self, connection: object, message: ProtocolModel) -> None:
        broadcast(self._transport, [connection], encode_message(message))

    def _broadcast(self, message: ProtocolModel, connections: list[object] | None = None) -> None:
        if connections is None:
            connections = [player.connection for player in self._registry.players()]
        broadcast(self._transport, connections, encode_message(message))

    def _guarded(self, callback):
        generation = self._generation

        def fire() -> None:
            with self._lock:
                if self._shut_down or generation != self._generation:
                    return
                callback()

        return fire
