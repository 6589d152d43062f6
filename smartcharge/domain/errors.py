"""Typed domain errors surfaced to the HTTP layer.

Every failure leaving a service is one of these classes. The transport layer
maps the class (or its ``code``) to a status code and never inspects messages
or raw ``sqlite3`` exceptions.
"""

from __future__ import annotations


class SmartChargeError(Exception):
    """Base class for all domain failures."""

    code = "INTERNAL"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(SmartChargeError):
    """Malformed date, discount, status or missing required field."""

    code = "VALIDATION"


class NotFoundError(SmartChargeError):
    """Station, reservation, campaign or user does not exist."""

    code = "NOT_FOUND"

    def __init__(self, resource: str) -> None:
        super().__init__(f"{resource} not found")
        self.resource = resource


class ConflictError(SmartChargeError):
    """Unique field collision or a delete blocked by referencing rows."""

    code = "CONFLICT"


class AlreadyCompletedError(SmartChargeError):
    """Status change or settlement attempted on a terminal reservation."""

    code = "ALREADY_COMPLETED"

    def __init__(self, reservation_id: int, status: str = "COMPLETED") -> None:
        super().__init__(f"Reservation {reservation_id} is already {status.lower()}")
        self.reservation_id = reservation_id
        self.status = status


class InternalError(SmartChargeError):
    """Persistence or transaction failure."""

    code = "INTERNAL"
