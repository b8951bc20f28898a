"""API error types rendered as `{"error": message}` JSON bodies."""

from __future__ import annotations


class ApiError(Exception):
    """Base error carrying the HTTP status returned to the caller."""

    status_code = 500

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(ApiError):
    """A required request field is missing or malformed."""

    status_code = 400


class NotFoundError(ApiError):
    status_code = 404


class SessionNotConnectedError(ApiError):
    """The action needs a live session that does not exist or is not connected."""

    status_code = 400

    def __init__(self, message: str = "Session not connected") -> None:
        super().__init__(message)


class LiveConnectionError(ApiError):
    """The realtime AI connection could not be opened or written to."""

    status_code = 500


class AudioEncodingError(ApiError):
    """The audio payload is not valid base64."""

    status_code = 500


class StorageUnavailableError(ApiError):
    status_code = 500
