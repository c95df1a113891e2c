"""
Custom Exceptions - RCJ Scoring Engine
rcj_scoring/core/exceptions.py

Exception taxonomy shared by the store backends, repositories and services.
"""

from typing import Optional


class RepositoryException(Exception):
    """Base exception for repository operations."""

    pass


class EntityNotFoundException(RepositoryException):
    """Entity not found in database."""

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} with ID {entity_id} not found")


class ValidationFailureException(RepositoryException):
    """A mutator rejected its input."""

    def __init__(self, message: str = "Validation failed", field: Optional[str] = None):
        self.message = message
        self.field = field
        super().__init__(f"{field}: {message}" if field else message)


class SerializationConflictException(RepositoryException):
    """Transient optimistic concurrency conflict; the transaction may be retried."""

    def __init__(self, message: str = "Serialization conflict"):
        self.message = message
        super().__init__(message)


class ConflictRetryExhaustedException(RepositoryException):
    """Serialization conflicts persisted after the retry budget was spent."""

    def __init__(self, attempts: int, last_error: Optional[Exception] = None):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"Transaction failed after {attempts} attempts: {last_error}"
        )


class StoreUnavailableException(RepositoryException):
    """Connectivity or timeout failure talking to the backing store."""

    def __init__(self, message: str = "Store unavailable"):
        self.message = message
        super().__init__(message)


class ForeignKeyViolationException(RepositoryException):
    """Foreign key constraint violation."""

    def __init__(self, message: str = "Foreign key constraint violation"):
        self.message = message
        super().__init__(message)


class InvariantViolationException(RepositoryException):
    """Stored data breaks an invariant the aggregation relies on."""

    def __init__(self, message: str = "Invariant violation"):
        self.message = message
        super().__init__(message)
