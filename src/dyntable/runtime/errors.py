"""
Error taxonomy for the record engine.

Every failure the engine reports is one of these. Transport layers map
``error_type`` (or the class) to their own status conventions.
"""

from __future__ import annotations


class DyntableError(Exception):
    """Base class for engine errors."""

    error_type = "error"


class NotFoundError(DyntableError):
    """Relation, column or record is absent."""

    error_type = "not_found"


class ValidationError(DyntableError):
    """Payload or identifier fails a domain rule."""

    error_type = "validation_error"

    def __init__(self, message: str, errors: list[str] | None = None):
        self.errors = errors or [message]
        super().__init__(message)


class ConflictError(DyntableError):
    """Relation or column already exists."""

    error_type = "conflict"


class ForbiddenError(DyntableError):
    """Operation is never allowed (protected relation, identity column)."""

    error_type = "forbidden"


class NoFieldsError(DyntableError):
    """Insert or update payload has no usable fields."""

    error_type = "no_fields"


class StoreError(DyntableError):
    """
    Underlying store failure.

    The driver's message is kept as-is and the driver exception is
    chained as ``__cause__``.
    """

    error_type = "store_error"
