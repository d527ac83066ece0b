"""ScreenText: local screen-text memory store."""

SERVICE_NAME = "agent-watch"
__version__ = "0.1.0"
