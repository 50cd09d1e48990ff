"""Exception types raised by the session core and the report API client."""

from __future__ import annotations

from typing import Iterable, Optional


class EmiSenseError(Exception):
    """Base class for all EmiSense errors."""


class SessionError(EmiSenseError):
    """A session command was refused; the state machine is unchanged or reset."""


class NotConnectedError(SessionError):
    def __init__(self, message: str = "Sensor bench is not connected") -> None:
        super().__init__(message)


class EmptySessionError(SessionError):
    def __init__(self, message: str = "No readings were recorded during the test") -> None:
        super().__init__(message)


class MissingMetadataError(SessionError):
    def __init__(self, missing_fields: Iterable[str]) -> None:
        self.missing_fields = list(missing_fields)
        super().__init__("Missing required fields: " + ", ".join(self.missing_fields))


class SessionStateError(SessionError):
    """Command issued from a state that does not accept it."""


class ApiError(EmiSenseError):
    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        self.status_code = status_code
        self.message = message
        if status_code is None:
            super().__init__(message)
        else:
            super().__init__(f"HTTP {status_code}: {message}")
