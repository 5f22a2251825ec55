# examtrack/errors.py
from fastapi import status


class TrackingError(Exception):
    """Base for failures the API reports to clients with a readable message."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(detail)


class BadRequest(TrackingError):
    status_code = status.HTTP_400_BAD_REQUEST


class Unauthorized(TrackingError):
    status_code = status.HTTP_401_UNAUTHORIZED


class Forbidden(TrackingError):
    status_code = status.HTTP_403_FORBIDDEN


class NotFound(TrackingError):
    status_code = status.HTTP_404_NOT_FOUND


class Conflict(TrackingError):
    status_code = status.HTTP_409_CONFLICT


class InvalidState(TrackingError):
    status_code = status.HTTP_409_CONFLICT


class TooEarly(TrackingError):
    status_code = status.HTTP_425_TOO_EARLY
