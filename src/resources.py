"""
Stack resources and the store interface used to read and write them.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from conditions import Condition


@dataclass(frozen=True)
class NamespacedName:
    """Reference to a stack by namespace and name."""

    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


@dataclass
class Stack:
    """A stack as stored, including its status ledger."""

    namespace: str
    name: str
    resource_version: int = 1
    spec: Dict[str, Any] = field(default_factory=dict)
    conditions: List[Condition] = field(default_factory=list)

    @property
    def ref(self) -> NamespacedName:
        return NamespacedName(self.namespace, self.name)

    def status_dict(self) -> Dict[str, Any]:
        """Return the status sub-object in its wire representation."""
        return {"conditions": [c.to_dict() for c in self.conditions]}


class StackClient(ABC):
    """
    Store capability consumed by the condition reconciler.

    Implementations provide optimistic concurrency: every successful status
    write bumps the stack's resource version, and a write carrying an older
    version is rejected with ConflictError.
    """

    @abstractmethod
    async def get_stack(self, ref: NamespacedName) -> Optional[Stack]:
        """
        Fetch a stack.

        Returns:
            The stack, or None if it does not exist
        """
        pass

    @abstractmethod
    async def update_stack_status(self, stack: Stack) -> Stack:
        """
        Write the full status of a stack.

        The write only succeeds if the stored resource version still equals
        stack.resource_version.

        Returns:
            The stack with its new resource version

        Raises:
            ConflictError: If the stored version has changed
            NotFoundError: If the stack no longer exists
        """
        pass
