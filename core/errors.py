"""
Domain errors raised by the session services.

Every failure a caller can recover from is an AuthError tagged with an
AuthErrorKind. Callers switch on `error.kind`; the HTTP layer maps the kind
to a status code and renders the payload next to the message.
"""

from enum import Enum
from typing import Any
from starlette import status


class AuthErrorKind(str, Enum):
    INVALID_CREDENTIALS = "invalid_credentials"
    DEVICE_LIMIT_EXCEEDED = "device_limit_exceeded"
    INVALID_TOKEN = "invalid_token"
    INVALID_AUDIENCE = "invalid_audience"
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"


STATUS_CODES = {
    AuthErrorKind.INVALID_CREDENTIALS: status.HTTP_401_UNAUTHORIZED,
    AuthErrorKind.DEVICE_LIMIT_EXCEEDED: status.HTTP_409_CONFLICT,
    AuthErrorKind.INVALID_TOKEN: status.HTTP_401_UNAUTHORIZED,
    AuthErrorKind.INVALID_AUDIENCE: status.HTTP_400_BAD_REQUEST,
    AuthErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    AuthErrorKind.FORBIDDEN: status.HTTP_403_FORBIDDEN,
}

DEFAULT_MESSAGES = {
    AuthErrorKind.INVALID_CREDENTIALS: "Invalid credentials",
    AuthErrorKind.DEVICE_LIMIT_EXCEEDED: "Maximum number of active devices reached",
    AuthErrorKind.INVALID_TOKEN: "Invalid or expired token",
    AuthErrorKind.INVALID_AUDIENCE: "Unknown client_id",
    AuthErrorKind.NOT_FOUND: "Not found",
    AuthErrorKind.FORBIDDEN: "Admin privileges required",
}


class AuthError(Exception):
    """
    Single exception type for recoverable session failures.

    Args:
        kind: What went wrong
        message: Human readable detail (defaults per kind)
        **payload: Structured fields for the caller, e.g. max_devices
    """

    def __init__(self, kind: AuthErrorKind, message: str | None = None, **payload: Any):
        self.kind = kind
        self.message = message or DEFAULT_MESSAGES[kind]
        self.payload = payload
        super().__init__(self.message)

    @property
    def status_code(self) -> int:
        return STATUS_CODES[self.kind]

    def to_dict(self) -> dict[str, Any]:
        return {"detail": self.message, "error": self.kind.value, **self.payload}

    def __repr__(self):
        return f"AuthError(kind={self.kind.value!r}, message={self.message!r})"
