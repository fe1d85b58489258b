"""Network configuration constants for the quiz server."""

DEFAULT_HOST: str = "0.0.0.0"
DEFAULT_PORT: int = 8000
WEBSOCKET_PATH: str = "/ws/{session_id}"
SESSION_NOT_FOUND_CLOSE_CODE: int = 4404
