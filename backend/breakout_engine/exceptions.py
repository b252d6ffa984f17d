"""
Domain exceptions for the breakout engine.

Collaborators (order executors, snapshot store, tick feeds, webhook parser)
raise these. The engine service and order router catch them at the
fire-and-forget boundary and log them; the HTTP layer translates
SignalParseError into a 400 response.
"""


class EngineError(Exception):
    """Base engine error."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ExecutionError(EngineError):
    """Order executor call failed."""

    def __init__(self, message: str, venue: str = "unknown"):
        self.venue = venue
        super().__init__(f"[{venue}] {message}")


class PersistenceError(EngineError):
    """Snapshot read or write failed."""


class FeedError(EngineError):
    """Tick feed transport failure."""


class SignalParseError(EngineError):
    """Inbound signal payload could not be used."""

    def __init__(self, message: str = "Unusable signal payload"):
        super().__init__(message)
