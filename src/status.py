"""
Condition Reconciler - keeps a stack's status conditions up to date.

Each setter makes its condition the single True entry of the stack's ledger.
All other entries are reset to False on every write, so the ledger converges
to one active condition even if earlier writers left it inconsistent.
"""

import logging
from datetime import datetime
from typing import Callable, Optional

from conditions import (
    Condition,
    apply_condition,
    degraded_condition,
    failed_condition,
    has_condition,
    now,
    pending_condition,
    ready_condition,
)
from errors import ConflictError, DegradedError, NotFoundError, StatusError
from resources import NamespacedName, StackClient
from retry import DEFAULT_RETRY, Backoff, retry_on_conflict

logger = logging.getLogger(__name__)


class ConditionReconciler:
    """
    Writes Ready/Failed/Pending/Degraded conditions to stacks.

    Writes are read-modify-write cycles against the store, retried on
    resource version conflicts. A stack that no longer exists is not an error.
    """

    def __init__(
        self,
        client: StackClient,
        backoff: Optional[Backoff] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.client = client
        self.backoff = backoff or DEFAULT_RETRY
        self.clock = clock or now

    async def set_ready(self, ref: NamespacedName) -> None:
        """Make Ready the active condition and reset all others to False."""
        await self._update_condition(ref, ready_condition())

    async def set_failed(self, ref: NamespacedName) -> None:
        """Make Failed the active condition and reset all others to False."""
        await self._update_condition(ref, failed_condition())

    async def set_pending(self, ref: NamespacedName) -> None:
        """Make Pending the active condition and reset all others to False."""
        await self._update_condition(ref, pending_condition())

    async def set_degraded(
        self, ref: NamespacedName, message: str, reason: str
    ) -> None:
        """Make Degraded the active condition with the given message and reason."""
        await self._update_condition(ref, degraded_condition(message, reason))

    async def set_degraded_from_error(
        self, ref: NamespacedName, err: DegradedError
    ) -> bool:
        """
        Record a DegradedError on the stack.

        Returns:
            Whether the caller should requeue the stack
        """
        await self.set_degraded(ref, err.message, err.reason)
        return err.requeue

    async def _update_condition(
        self, ref: NamespacedName, condition: Condition
    ) -> None:
        try:
            stack = await self.client.get_stack(ref)
        except Exception as e:
            raise StatusError("failed to lookup stack", name=ref) from e

        if stack is None:
            logger.debug(f"Stack {ref} not found, skipping {condition.type} condition")
            return

        if has_condition(stack.conditions, condition):
            logger.debug(f"Stack {ref} already has condition {condition.type}")
            return

        async def attempt() -> None:
            try:
                current = await self.client.get_stack(ref)
            except Exception as e:
                raise StatusError("failed to lookup stack", name=ref) from e
            if current is None:
                raise NotFoundError("stack not found", name=ref)

            current.conditions = apply_condition(
                current.conditions, condition, self.clock()
            )

            try:
                await self.client.update_stack_status(current)
            except (ConflictError, NotFoundError):
                raise
            except Exception as e:
                raise StatusError(
                    "failed to update stack status", name=ref, condition=condition.type
                ) from e

        try:
            await retry_on_conflict(self.backoff, attempt)
        except NotFoundError:
            logger.debug(f"Stack {ref} was deleted while updating its status")
            return
        except ConflictError as e:
            raise StatusError(
                "failed to update stack status",
                name=ref,
                condition=condition.type,
                attempts=self.backoff.steps,
            ) from e

        logger.info(f"Set condition {condition.type} on stack {ref}")
