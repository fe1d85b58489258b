"""FastAPI server exposing host controls and the player WebSocket endpoint."""

from __future__ import annotations

from contextlib import asynccontextmanager
import logging
from threading import Thread

from fastapi import Depends, FastAPI, HTTPException, Response, WebSocket, WebSocketDisconnect
from fastapi.concurrency import run_in_threadpool
from fastapi.websockets import WebSocketState
from pydantic import BaseModel
import uvicorn

from quiz_live.constants.about import APP_ABOUT_TEXT, APP_LICENSE, APP_NAME, APP_VERSION
from quiz_live.constants.network_constants import (
    DEFAULT_HOST,
    DEFAULT_PORT,
    SESSION_NOT_FOUND_CLOSE_CODE,
    WEBSOCKET_PATH,
)
from quiz_live.core.errors import (
    InsufficientPlayersError,
    InvalidTransitionError,
    QuizLoadError,
    SessionNotFoundError,
)
from quiz_live.core.game_controller import GameController
from quiz_live.core.models import RoundResult, SessionSnapshot
from quiz_live.core.protocol import ErrorMessage, encode_message
from quiz_live.core.services.quiz_repository import QuizCatalog
from quiz_live.core.session_manager import SessionManager
from quiz_live.server.websocket_transport import WebSocketTransport

logger = logging.getLogger(__name__)


class CreateSessionPayload(BaseModel):
    """Payload schema for hosting a new session."""

    quiz: str


def _serialize_result(result: RoundResult | None) -> dict[str, object] | None:
    if result is None:
        return None
    return {
        "question_index": result.question_index,
        "correct_answer_index": result.correct_answer_index,
        "leaderboard": [{"name": e.name, "score": e.score} for e in result.leaderboard],
        "awarded_points": dict(result.awarded_points),
    }


def _serialize_snapshot(snapshot: SessionSnapshot) -> dict[str, object]:
    return {
        "session_id": snapshot.session_id,
        "status": snapshot.status.value,
        "quiz_title": snapshot.quiz_title,
        "question_count": snapshot.question_count,
        "round_index": snapshot.round_index,
        "players": [{"name": p.name, "score": p.score} for p in snapshot.players],
        "remaining_seconds": snapshot.remaining_seconds,
        "answered_count": snapshot.answered_count,
        "expected_count": snapshot.expected_count,
        "last_result": _serialize_result(snapshot.last_result),
    }


def create_api_app(
    session_manager: SessionManager,
    transport: WebSocketTransport,
    catalog: QuizCatalog,
) -> FastAPI:
    """Create a FastAPI application wired to the provided session manager."""

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        yield
        logger.info("Server stopping; ending all sessions")
        session_manager.shutdown_all()

    app = FastAPI(
        title=f"{APP_NAME} API",
        version=APP_VERSION,
        description=APP_ABOUT_TEXT,
        license_info={"name": APP_LICENSE},
        lifespan=lifespan,
    )

    def get_controller(session_id: str) -> GameController:
        try:
            return session_manager.get(session_id)
        except SessionNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc

    @app.get("/quizzes")
    def list_quizzes() -> list[dict[str, object]]:
        return [
            {"key": listing.key, "title": listing.title, "question_count": listing.question_count}
            for listing in catalog.list_quizzes()
        ]

    @app.post("/sessions", status_code=201)
    def create_session(payload: CreateSessionPayload) -> dict[str, object]:
        try:
            quiz = catalog.load(payload.quiz)
        except QuizLoadError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        controller = session_manager.create_session(quiz)
        return {
            "session_id": controller.session_id,
            "quiz_title": quiz.title,
            "question_count": quiz.question_count,
        }

    @app.get("/sessions")
    def list_sessions() -> list[dict[str, object]]:
        return [
            {"session_id": c.session_id, "status": c.status.value, "quiz_title": c.quiz.title}
            for c in session_manager.list_sessions()
        ]

    @app.get("/sessions/{session_id}")
    def get_session(controller: GameController = Depends(get_controller)) -> dict[str, object]:
        return _serialize_snapshot(controller.snapshot())

    @app.post("/sessions/{session_id}/start")
    def start_session(controller: GameController = Depends(get_controller)) -> dict[str, object]:
        try:
            controller.start_game()
        except (InsufficientPlayersError, InvalidTransitionError) as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        return _serialize_snapshot(controller.snapshot())

    @app.post("/sessions/{session_id}/advance")
    def advance_session(controller: GameController = Depends(get_controller)) -> dict[str, object]:
        try:
            controller.advance()
        except InvalidTransitionError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        return _serialize_snapshot(controller.snapshot())

    @app.delete("/sessions/{session_id}", status_code=204)
    def end_session(session_id: str) -> Response:
        try:
            session_manager.end_session(session_id)
        except SessionNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return Response(status_code=204)

    @app.websocket(WEBSOCKET_PATH)
    async def player_socket(websocket: WebSocket, session_id: str) -> None:
        await websocket.accept()
        try:
            controller = session_manager.get(session_id)
        except SessionNotFoundError:
            await websocket.send_json(encode_message(ErrorMessage(message="Session not found")))
            await websocket.close(code=SESSION_NOT_FOUND_CLOSE_CODE)
            return

        connection = transport.register(websocket)
        logger.info(
            "Connection %r opened on session %s (%d open)", connection, session_id, transport.connection_count()
        )
        try:
            while websocket.application_state is WebSocketState.CONNECTED:
                frame = await websocket.receive()
                if frame["type"] == "websocket.disconnect":
                    raise WebSocketDisconnect(frame.get("code", 1000))
                payload = frame.get("text") or frame.get("bytes")
                if payload is None:
                    continue
                await run_in_threadpool(controller.handle_message, connection, payload)
        except WebSocketDisconnect:
            logger.info("Connection %r closed on session %s", connection, session_id)
        finally:
            transport.unregister(connection)
            await run_in_threadpool(controller.handle_disconnect, connection)

    return app


def start_api_server(
    app: FastAPI,
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
    log_level: str = "info",
) -> tuple[uvicorn.Server, Thread]:
    """Start the FastAPI server in a background daemon thread."""
    config = uvicorn.Config(app=app, host=host, port=port, log_level=log_level)
    server = uvicorn.Server(config)

    def run_server() -> None:
        server.run()

    thread = Thread(target=run_server, name="QuizApiServer", daemon=True)
    thread.start()
    return server, thread
