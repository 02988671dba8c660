"""Pytest configuration and fixtures."""

import asyncio
import copy
from datetime import datetime, timezone
from typing import Dict, List, Optional

import asyncpg
import pytest

from conditions import Condition, ConditionStatus
from errors import ConflictError, NotFoundError
from resources import NamespacedName, Stack, StackClient
from retry import Backoff


class InMemoryStackClient(StackClient):
    """
    Versioned in-memory store.

    Every call yields to the event loop so concurrent callers interleave.
    Writes with a stale resource version raise ConflictError.
    """

    def __init__(self):
        self.stacks: Dict[NamespacedName, Stack] = {}
        self.writes: List[Stack] = []
        self.conflicts = 0
        self.schema_initialized = False

    def add(self, ref: NamespacedName, conditions: Optional[List[Condition]] = None):
        self.stacks[ref] = Stack(
            namespace=ref.namespace,
            name=ref.name,
            conditions=list(conditions or []),
        )
        return self.stacks[ref]

    async def get_stack(self, ref: NamespacedName) -> Optional[Stack]:
        await asyncio.sleep(0)
        stack = self.stacks.get(ref)
        return copy.deepcopy(stack) if stack is not None else None

    async def update_stack_status(self, stack: Stack) -> Stack:
        await asyncio.sleep(0)
        current = self.stacks.get(stack.ref)
        if current is None:
            raise NotFoundError("stack not found", name=stack.ref)
        if current.resource_version != stack.resource_version:
            self.conflicts += 1
            raise ConflictError("stack has been modified", name=stack.ref)

        stored = copy.deepcopy(stack)
        stored.resource_version += 1
        self.stacks[stack.ref] = stored
        self.writes.append(copy.deepcopy(stored))
        stack.resource_version = stored.resource_version
        return stack

    async def initialize_schema(self) -> None:
        self.schema_initialized = True

    async def create_stack(self, ref: NamespacedName, spec=None) -> Stack:
        await asyncio.sleep(0)
        if ref in self.stacks:
            raise asyncpg.UniqueViolationError(
                "duplicate key value violates unique constraint"
            )
        stack = self.add(ref)
        stack.spec = dict(spec or {})
        return copy.deepcopy(stack)

    async def list_stacks(self, namespace=None, limit: int = 100) -> List[Stack]:
        await asyncio.sleep(0)
        stacks = [
            copy.deepcopy(s)
            for ref, s in sorted(self.stacks.items(), key=lambda item: str(item[0]))
            if namespace is None or ref.namespace == namespace
        ]
        return stacks[:limit]

    async def delete_stack(self, ref: NamespacedName) -> bool:
        await asyncio.sleep(0)
        return self.stacks.pop(ref, None) is not None


@pytest.fixture
def stack_ref():
    return NamespacedName("monitoring", "logs")


@pytest.fixture
def store():
    return InMemoryStackClient()


@pytest.fixture
def no_wait_backoff():
    """Backoff without sleeping between attempts."""
    return Backoff(steps=5, duration=0, factor=1.0, jitter=0)


@pytest.fixture
def fixed_time():
    return datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def make_condition():
    """Factory for conditions with sensible defaults."""

    def _make(
        type: str,
        status: ConditionStatus = ConditionStatus.TRUE,
        reason: str = "SomeReason",
        message: str = "some message",
        last_transition_time: Optional[datetime] = None,
    ) -> Condition:
        return Condition(
            type=type,
            status=status,
            reason=reason,
            message=message,
            last_transition_time=last_transition_time,
        )

    return _make


@pytest.fixture
def sample_stack_row():
    """Sample stacks table row for testing."""
    return {
        "id": 1,
        "namespace": "monitoring",
        "name": "logs",
        "resource_version": 3,
        "spec": '{"size": "small"}',
        "status": (
            '{"conditions": [{"type": "Ready", "status": "True", '
            '"reason": "ReadyComponents", "message": "All components ready", '
            '"lastTransitionTime": "2024-05-01T12:00:00Z"}]}'
        ),
        "created_at": None,
        "updated_at": None,
    }
