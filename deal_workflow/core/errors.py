"""
Error taxonomy for the deal workflow.

StaleStateError is retryable after a fresh read. UnauthorizedActionError
and InvalidReferenceError are fatal to the current attempt. PartialFailure
is never raised out of a batch; it is collected per item and reported
alongside the successes.
"""

from typing import Any, Optional


class WorkflowError(Exception):
    """Base class for all workflow errors."""


class StaleStateError(WorkflowError):
    """Raised when an action's precondition no longer holds."""

    def __init__(
        self,
        entity_kind: str,
        entity_id: Any,
        message: str,
        expected: Optional[Any] = None,
        actual: Optional[Any] = None,
    ):
        self.entity_kind = entity_kind
        self.entity_id = entity_id
        self.expected = expected
        self.actual = actual
        super().__init__(f"{entity_kind} '{entity_id}': {message}")


class UnauthorizedActionError(WorkflowError):
    """Raised when a role has no authority over the targeted gate."""

    def __init__(self, role: str, entity_kind: str, entity_id: Any, message: str = ""):
        self.role = role
        self.entity_kind = entity_kind
        self.entity_id = entity_id
        detail = message or "role has no approval gate here"
        super().__init__(f"Role '{role}' cannot act on {entity_kind} '{entity_id}': {detail}")


class InvalidReferenceError(WorkflowError):
    """Raised when an identifier is missing or points at nothing."""

    def __init__(self, entity_kind: str, entity_id: Any):
        self.entity_kind = entity_kind
        self.entity_id = entity_id
        if entity_id in (None, ""):
            super().__init__(f"Missing {entity_kind} identifier")
        else:
            super().__init__(f"{entity_kind} '{entity_id}' not found")


class PartialFailure(WorkflowError):
    """Item-level failure inside a batch (fan-out, reconciliation)."""

    def __init__(self, item_id: Any, operation: str, cause: Exception):
        self.item_id = item_id
        self.operation = operation
        self.cause = cause
        super().__init__(f"{operation} failed for '{item_id}': {cause}")

    def to_dict(self) -> dict:
        return {
            "item_id": self.item_id,
            "operation": self.operation,
            "error": str(self.cause),
        }
