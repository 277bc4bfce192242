"""Typed errors raised by the role assignment workflow.

The lifecycle service raises these instead of HTTP errors so the same
operations can be driven from request handlers, scripts and tests.
``marketportal.main`` translates them to HTTP responses.
"""
from __future__ import annotations

from typing import Optional


class WorkflowError(Exception):
    """Base class for every workflow failure."""

    code: str = "WORKFLOW_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(WorkflowError):
    """Malformed input: missing file, wrong MIME type or size, empty reason."""

    code = "VALIDATION_ERROR"


class AuthorizationError(WorkflowError):
    """The actor may not perform the requested transition."""

    code = "FORBIDDEN"


class NotFoundError(WorkflowError):
    code = "NOT_FOUND"

    def __init__(self, resource: str, resource_id: object) -> None:
        super().__init__(f"{resource} {resource_id} not found")
        self.resource = resource
        self.resource_id = resource_id


class InvalidStateError(WorkflowError):
    """The transition is not legal from the assignment's current status."""

    code = "INVALID_STATE"

    def __init__(self, message: str, *, current_status: Optional[str] = None) -> None:
        super().__init__(message)
        self.current_status = current_status


class PersistenceError(WorkflowError):
    """The transactional store failed; the operation was rolled back and may be retried."""

    code = "PERSISTENCE_ERROR"

    def __init__(self, message: str, *, original_error: Exception | None = None) -> None:
        super().__init__(message)
        self.original_error = original_error


class SideEffectError(WorkflowError):
    """A best-effort side effect (notification, session invalidation) failed."""

    code = "SIDE_EFFECT_ERROR"

    def __init__(self, effect: str, *, original_error: Exception | None = None) -> None:
        super().__init__(f"Side effect '{effect}' failed: {original_error}")
        self.effect = effect
        self.original_error = original_error
