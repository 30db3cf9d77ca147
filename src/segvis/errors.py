"""Exceptions raised by segvis."""

from typing import Any

from segvis.events import Event, EventType


class SegvisError(Exception):
    """Base class for segvis errors."""


class ApiError(SegvisError):
    """Raised when a backend API call does not succeed."""

    kind = "api"

    def __init__(self, message: str, payload: Any = None):
        super().__init__(message)
        self.payload = payload

    @property
    def detail(self) -> Any:
        """The error value surfaced to users: the body's ``error`` field when present."""
        if isinstance(self.payload, dict) and "error" in self.payload:
            return self.payload["error"]
        if self.payload is not None:
            return self.payload
        return str(self)


class RequestError(ApiError):
    """The backend answered with a non-success status."""

    kind = "request"

    def __init__(self, status_code: int, payload: Any):
        super().__init__(f"Request failed with status {status_code}", payload)
        self.status_code = status_code


class TransportError(ApiError):
    """The request never produced a usable response (connection, timeout, malformed body)."""

    kind = "transport"

    def __init__(self, message: str):
        super().__init__(message)


class ActorStoppedError(SegvisError):
    """Raised when asking an actor that is no longer running."""

    def __init__(self, uid: str):
        self.uid = uid
        super().__init__(f"Actor '{uid}' is stopped")


def error_event(error: Exception, **context: Any) -> Event:
    """Build the ERROR event reported to a parent for a failed operation."""
    if isinstance(error, ApiError):
        return Event(type=EventType.ERROR, error=error.detail, kind=error.kind, **context)
    return Event(type=EventType.ERROR, error=str(error), kind="client", **context)
