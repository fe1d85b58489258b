"""Application entry point for the QuizLive host server."""

from __future__ import annotations

import socket

from quiz_live.core.services.quiz_repository import QuizCatalog
from quiz_live.core.session_manager import SessionManager
from quiz_live.core.timers import ThreadingTimerFactory
from quiz_live.server.api_server import create_api_app, start_api_server
from quiz_live.server.websocket_transport import WebSocketTransport
from quiz_live.utils.logging_config import configure_logging
from quiz_live.utils.settings import EngineSettings, ServerSettings


def _determine_host_url(port: int) -> str:
    """Best-effort determination of the local IP players should connect to."""
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
            sock.connect(("8.8.8.8", 80))
            ip_address = sock.getsockname()[0]
    except OSError:
        ip_address = "127.0.0.1"
    return f"http://{ip_address}:{port}/"


def main() -> None:
    """Initialize logging and settings, then serve until interrupted."""
    server_settings = ServerSettings.from_env()
    logger = configure_logging(server_settings.log_level)
    logger.info("Starting QuizLive host server…")

    transport = WebSocketTransport()
    session_manager = SessionManager(
        transport=transport,
        timers=ThreadingTimerFactory(),
        settings=EngineSettings.from_env(),
    )
    catalog = QuizCatalog(server_settings.quiz_directory)
    logger.info("Serving quizzes from %s", catalog.directory.resolve())

    app = create_api_app(session_manager, transport, catalog)
    server, thread = start_api_server(
        app,
        host=server_settings.host,
        port=server_settings.port,
        log_level=server_settings.log_level.lower(),
    )
    logger.info("Host API available at %s", _determine_host_url(server_settings.port))
    try:
        thread.join()
    except KeyboardInterrupt:
        logger.info("Interrupted; stopping server")
        server.should_exit = True
        thread.join(timeout=5)
    finally:
        session_manager.shutdown_all()


if __name__ == "__main__":
    main()
