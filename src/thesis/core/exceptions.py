# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Thesis Contributors

"""Custom exception hierarchy for the Thesis opinion engine.

Each failure kind is its own class so the transport layer can map it to a
response status without inspecting message text:

- validation errors are caller-correctable and never retried
- protocol-order errors mean a required voting step was skipped
- authorization errors guard self-access and blind voting
- conflict errors are the only retryable kind
"""

from __future__ import annotations

from typing import Any


class ThesisException(Exception):  # noqa: N818
    """Base exception for all Thesis errors.

    All Thesis-specific exceptions should inherit from this class.
    """

    retryable: bool = False

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
            "retryable": self.retryable,
        }


class DatabaseException(ThesisException):
    """Exception for database-related errors.

    Raised when:
    - Database connection fails
    - Query execution fails
    - Schema initialisation fails
    """

    pass


class ConfigException(ThesisException):
    """Exception for configuration errors."""

    def __init__(self, message: str, missing_vars: list[str] | None = None):
        details = {}
        if missing_vars:
            details["missing_vars"] = missing_vars
        super().__init__(message, details)
        self.missing_vars = missing_vars or []


class ValidationException(ThesisException):
    """Exception for validation errors.

    Raised when:
    - Input validation fails
    - Required fields are missing
    - Field values are out of range
    """

    def __init__(self, message: str, field: str | None = None, value: Any = None):
        details = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)
        super().__init__(message, details)
        self.field = field
        self.value = value


class InvalidRangeError(ValidationException):
    """A support value or confidence fell outside its allowed range."""

    def __init__(self, field: str, value: Any, minimum: int | float, maximum: int | float):
        super().__init__(f"{field} must be between {minimum} and {maximum}", field=field, value=value)
        self.details["min"] = minimum
        self.details["max"] = maximum
        self.minimum = minimum
        self.maximum = maximum


# ============================================================================
# Protocol-order errors
# ============================================================================


class ProtocolOrderError(ThesisException):
    """The caller skipped (or repeated) a step of the voting protocol."""

    def __init__(self, message: str, debate_id: str | None = None, phase: str | None = None):
        details = {}
        if debate_id:
            details["debate_id"] = debate_id
        if phase:
            details["phase"] = phase
        super().__init__(message, details)
        self.debate_id = debate_id
        self.phase = phase


class PreStanceRequiredError(ProtocolOrderError):
    """A post-stance was submitted before any pre-stance."""

    def __init__(self, debate_id: str):
        super().__init__("Record your pre-read stance first", debate_id=debate_id, phase="pre")


class PostStanceRequiredError(ProtocolOrderError):
    """A mind change was attributed before a post-stance existed."""

    def __init__(self, debate_id: str):
        super().__init__(
            "Record your post-read stance before attributing a mind change",
            debate_id=debate_id,
            phase="post",
        )


class AlreadyRecordedError(ProtocolOrderError):
    """The stance phase (or the attribution) is already occupied."""

    def __init__(self, debate_id: str, phase: str, message: str | None = None):
        super().__init__(
            message or f"{phase.capitalize()}-read stance already recorded for this debate",
            debate_id=debate_id,
            phase=phase,
        )


# ============================================================================
# Authorization errors
# ============================================================================


class AuthorizationError(ThesisException):
    """The requester is not allowed to perform this operation."""

    pass


class NotSelfAccessError(AuthorizationError):
    """Personal stance data was requested by someone other than its owner."""

    def __init__(self, message: str = "Can only access your own stance data"):
        super().__init__(message)


class BlindVotingError(AuthorizationError):
    """Market data was requested before the requester recorded a pre-stance."""

    def __init__(self, debate_id: str, reason: str | None = None):
        super().__init__(reason or "Pre-stance required", {"debate_id": debate_id})
        self.debate_id = debate_id


class VotingNotPermittedError(AuthorizationError):
    """A debater tried to vote on their own debate while that is disabled."""

    def __init__(self, debate_id: str):
        super().__init__("Debaters may not vote on their own debate", {"debate_id": debate_id})
        self.debate_id = debate_id


class PrivacyViolationError(AuthorizationError):
    """An internal query shape would expose individual votes."""

    pass


# ============================================================================
# Lookup / concurrency errors
# ============================================================================


class NotFoundError(ThesisException):
    """Exception for resource not found errors."""

    def __init__(self, resource_type: str, resource_id: str):
        message = f"{resource_type} not found: {resource_id}"
        details = {
            "resource_type": resource_type,
            "resource_id": resource_id,
        }
        super().__init__(message, details)
        self.resource_type = resource_type
        self.resource_id = resource_id


class ConflictError(ThesisException):
    """A concurrent writer won the race; the operation may be retried.

    Raised when:
    - A uniqueness constraint rejects a concurrent stance insert
    - Optimistic locking on a reputation factor keeps failing
    """

    retryable = True

    def __init__(self, message: str, existing_id: str | None = None):
        details = {}
        if existing_id:
            details["existing_id"] = existing_id
        super().__init__(message, details)
        self.existing_id = existing_id
