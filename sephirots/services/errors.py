"""
sephirots.services.errors — Service Exceptions
================================================

Services raise these instead of returning ``(success, message)`` tuples.
The API layer maps each class to an HTTP status via one exception handler
and renders ``{"error": message, **extra}`` so the client can show the
message in a toast.
"""

from __future__ import annotations


class ServiceError(Exception):
    """Base class for expected, user-facing service failures."""

    status_code: int = 400

    def __init__(self, message: str, **extra: object) -> None:
        super().__init__(message)
        self.message = message
        self.extra = extra

    def to_dict(self) -> dict:
        return {"error": self.message, **self.extra}


class ValidationError(ServiceError):
    status_code = 400


class NotFoundError(ServiceError):
    status_code = 404


class ConflictError(ServiceError):
    status_code = 409


class InsufficientPointsError(ServiceError):
    """Raised when a redemption costs more than the user's balance.

    ``extra`` carries ``pointsNeeded`` for the client's "need N more" text.
    """

    status_code = 402

    def __init__(self, points_needed: int) -> None:
        super().__init__(
            f"You need {points_needed} more points to redeem this reward.",
            pointsNeeded=points_needed,
        )
        self.points_needed = points_needed


class PaymentsUnavailableError(ServiceError):
    status_code = 503
