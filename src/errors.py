"""
Error types for stack status handling.

Store failures are raised as StatusError subclasses carrying the identifying
context (stack name, operation) as key/value pairs.
"""

from typing import Any, Dict


class StatusError(Exception):
    """Base error for status operations."""

    def __init__(self, message: str, **context: Any):
        self.message = message
        self.context: Dict[str, Any] = context
        super().__init__(message)

    def __str__(self) -> str:
        if not self.context:
            return self.message
        details = ", ".join(f"{key}={value}" for key, value in self.context.items())
        return f"{self.message} ({details})"


class NotFoundError(StatusError):
    """The target stack does not exist in the store."""


class ConflictError(StatusError):
    """The stack was modified since it was read (resource version mismatch)."""


class DegradedError(Exception):
    """
    Raised by reconciliation code when a stack has an invalid configuration.

    Recorded on the stack as a Degraded condition.
    """

    def __init__(self, message: str, reason: str, requeue: bool = False):
        self.message = message
        self.reason = reason
        self.requeue = requeue
        super().__init__(message)

    def __str__(self) -> str:
        return f"cluster degraded: {self.message}"
