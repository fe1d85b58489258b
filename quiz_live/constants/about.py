"""Static metadata describing QuizLive."""

APP_NAME = "QuizLive"
APP_VERSION = "0.1"
APP_LICENSE = "MIT License"
APP_ABOUT_TEXT = (
    "QuizLive is a host-authoritative live quiz engine. The host loads a quiz, "
    "players join over WebSockets with a six-digit session PIN, and every "
    "question is a timed round scored by correctness and remaining time."
)
