"""
Core Package - RCJ Scoring Engine
rcj_scoring/core/__init__.py

Core infrastructure: exceptions, logging, engine wiring.
"""

from rcj_scoring.core.exceptions import (
    ConflictRetryExhaustedException,
    EntityNotFoundException,
    ForeignKeyViolationException,
    InvariantViolationException,
    RepositoryException,
    SerializationConflictException,
    StoreUnavailableException,
    ValidationFailureException,
)

__all__ = [
    "ConflictRetryExhaustedException",
    "EntityNotFoundException",
    "ForeignKeyViolationException",
    "InvariantViolationException",
    "RepositoryException",
    "SerializationConflictException",
    "StoreUnavailableException",
    "ValidationFailureException",
]
