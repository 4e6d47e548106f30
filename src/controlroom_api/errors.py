"""Error taxonomy for the Control Room API client.

Every error carries the HTTP status code (when a response was received),
the status text and the raw details so callers can branch on them without
parsing messages.
"""


class ControlRoomError(Exception):
    """Base class for failures reported by the Control Room client."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        status_text: str = "",
        details: str = "",
    ):
        super().__init__(message)
        self.status_code = status_code
        self.status_text = status_text
        self.details = details

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}({str(self)!r}, status_code={self.status_code!r}, "
            f"status_text={self.status_text!r})"
        )


class AuthError(ControlRoomError):
    """Raised when login or logout against the Control Room fails."""


class ValidationError(ControlRoomError):
    """Raised for malformed or incomplete caller input."""


class TransportError(ControlRoomError):
    """Raised for network, timeout or TLS failures."""


class ApiError(ControlRoomError):
    """Raised when the Control Room answers with a non-2xx status."""
