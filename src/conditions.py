"""
Status conditions for stacks.

A stack carries an ordered ledger of conditions keyed by type. At most one of
them is True at any time; the others are kept as False entries so the history
of earlier verdicts stays visible.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ConditionType(str, Enum):
    """Condition types written by the condition reconciler."""

    READY = "Ready"
    FAILED = "Failed"
    PENDING = "Pending"
    DEGRADED = "Degraded"


class ConditionStatus(str, Enum):
    """Status of a single condition."""

    TRUE = "True"
    FALSE = "False"
    UNKNOWN = "Unknown"


class ConditionReason(str, Enum):
    """Machine-readable reasons for stack conditions."""

    READY_COMPONENTS = "ReadyComponents"
    FAILED_COMPONENTS = "FailedComponents"
    PENDING_COMPONENTS = "PendingComponents"

    # Degraded reasons
    MISSING_OBJECT_STORAGE_SECRET = "MissingObjectStorageSecret"
    INVALID_OBJECT_STORAGE_SECRET = "InvalidObjectStorageSecret"
    MISSING_GATEWAY_TENANT_SECRET = "MissingGatewayTenantSecret"
    INVALID_GATEWAY_TENANT_SECRET = "InvalidGatewayTenantSecret"
    INVALID_REPLICATION_CONFIGURATION = "InvalidReplicationConfiguration"
    INVALID_TENANTS_CONFIGURATION = "InvalidTenantsConfiguration"
    STORAGE_EXHAUSTED = "StorageExhausted"


MESSAGE_READY = "All components ready"
MESSAGE_FAILED = "Some stack components failed"
MESSAGE_PENDING = "Some stack components pending on dependencies"


class Condition(BaseModel):
    """A single status condition, serialized with camelCase keys."""

    model_config = ConfigDict(populate_by_name=True)

    type: str = Field(..., description="Condition type, e.g. Ready")
    status: ConditionStatus = Field(ConditionStatus.UNKNOWN)
    reason: str = Field("", description="Machine-readable reason code")
    message: str = Field("", description="Human-readable message")
    last_transition_time: Optional[datetime] = Field(
        None, alias="lastTransitionTime"
    )

    def to_dict(self) -> dict:
        """Return the wire representation of the condition."""
        return self.model_dump(by_alias=True, mode="json")


def now() -> datetime:
    """Current UTC time truncated to whole seconds."""
    return datetime.now(timezone.utc).replace(microsecond=0)


def ready_condition() -> Condition:
    return Condition(
        type=ConditionType.READY.value,
        status=ConditionStatus.TRUE,
        reason=ConditionReason.READY_COMPONENTS.value,
        message=MESSAGE_READY,
    )


def failed_condition() -> Condition:
    return Condition(
        type=ConditionType.FAILED.value,
        status=ConditionStatus.TRUE,
        reason=ConditionReason.FAILED_COMPONENTS.value,
        message=MESSAGE_FAILED,
    )


def pending_condition() -> Condition:
    return Condition(
        type=ConditionType.PENDING.value,
        status=ConditionStatus.TRUE,
        reason=ConditionReason.PENDING_COMPONENTS.value,
        message=MESSAGE_PENDING,
    )


def degraded_condition(message: str, reason: str) -> Condition:
    if isinstance(reason, ConditionReason):
        reason = reason.value
    return Condition(
        type=ConditionType.DEGRADED.value,
        status=ConditionStatus.TRUE,
        reason=reason,
        message=message,
    )


def has_condition(conditions: List[Condition], desired: Condition) -> bool:
    """Check whether the desired condition is already recorded as True."""
    for condition in conditions:
        if (
            condition.type == desired.type
            and condition.reason == desired.reason
            and condition.message == desired.message
            and condition.status == ConditionStatus.TRUE
        ):
            return True
    return False


def active_conditions(conditions: List[Condition]) -> List[Condition]:
    """Return all conditions whose status is True."""
    return [c for c in conditions if c.status == ConditionStatus.TRUE]


def apply_condition(
    conditions: List[Condition], desired: Condition, timestamp: datetime
) -> List[Condition]:
    """
    Compute the ledger that results from setting the desired condition.

    Every existing entry is reset to False with the given timestamp, then the
    entry of the desired type is replaced in place (or appended when missing)
    with the desired condition marked True. The input list is not modified.

    Args:
        conditions: Current ledger as read from the store
        desired: Condition to make the single active one
        timestamp: Transition time applied to every touched entry

    Returns:
        The new ledger
    """
    updated = []
    index = -1
    for i, condition in enumerate(conditions):
        updated.append(
            condition.model_copy(
                update={
                    "status": ConditionStatus.FALSE,
                    "last_transition_time": timestamp,
                }
            )
        )
        if condition.type == desired.type:
            index = i

    active = desired.model_copy(
        update={"status": ConditionStatus.TRUE, "last_transition_time": timestamp}
    )
    if index == -1:
        updated.append(active)
    else:
        updated[index] = active

    return updated
