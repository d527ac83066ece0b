"""Error taxonomy shared by the capture daemon and the query server."""


class ScreenTextError(Exception):
    pass


class InitializationError(ScreenTextError):
    """The record store could not open or create its schema."""


class WriteError(ScreenTextError):
    """An insert, purge or compaction was rejected by the storage medium."""


class QueryError(ScreenTextError):
    """A search or status query failed."""


class ProbeFailure(ScreenTextError):
    """A capability probe could not execute."""


class ConfigurationError(ScreenTextError):
    pass


class ValidationError(ScreenTextError):
    """Missing or malformed request parameter (client error)."""

    def __init__(self, code: str, message: str, status_code: int = 400):
        self.code = code
        self.message = message
        self.status_code = status_code
        super().__init__(message)
