"""Domain exceptions for the conversation, team and notification services."""

from __future__ import annotations

from fastapi import status


class ScoutleteError(Exception):
    """Base class for errors surfaced by the service layer."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    detail: str = "error"

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(detail or self.detail)
        if detail:
            self.detail = detail


class InvalidArgumentError(ScoutleteError):
    """Malformed or empty input."""

    status_code = status.HTTP_400_BAD_REQUEST
    detail = "invalid_argument"


class NotFoundError(ScoutleteError):
    """A referenced entity does not exist."""

    status_code = status.HTTP_404_NOT_FOUND
    detail = "not_found"


class ForbiddenError(ScoutleteError):
    """The caller lacks entitlement for the requested action."""

    status_code = status.HTTP_403_FORBIDDEN
    detail = "forbidden"


class ConflictError(ScoutleteError):
    """A duplicate was found where the caller asked for exclusivity."""

    status_code = status.HTTP_409_CONFLICT
    detail = "conflict"


class TransientError(ScoutleteError):
    """Store I/O failed; the caller may retry."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    detail = "temporarily_unavailable"
