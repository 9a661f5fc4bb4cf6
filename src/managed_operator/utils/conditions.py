"""Utilities for managing Kubernetes conditions."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from ..constants import (
    COND_READY,
    COND_REFERENCES_RESOLVED,
    COND_SYNCED,
    REASON_AVAILABLE,
    REASON_BINDING,
    REASON_CREATING,
    REASON_DELETING,
    REASON_RECONCILE_ERROR,
    REASON_RECONCILE_SUCCESS,
    REASON_RESOLUTION_BLOCKED,
    REASON_RESOLUTION_SUCCESS,
    REASON_UNAVAILABLE,
)
from .errors import sanitize_exception

STATUS_TRUE = "True"
STATUS_FALSE = "False"
STATUS_UNKNOWN = "Unknown"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def update_condition(
    conditions: list[dict[str, Any]],
    condition_type: str,
    status: str,
    reason: str,
    message: str,
    observed_generation: int | None = None,
) -> list[dict[str, Any]]:
    """Update or add a condition to the conditions list.

    A condition equal to the existing one (ignoring lastTransitionTime) leaves
    the list untouched. lastTransitionTime only moves when status changes.

    Args:
        conditions: List of existing conditions
        condition_type: Type of condition
        status: Status of condition ("True", "False", "Unknown")
        reason: Reason for the condition
        message: Human-readable message
        observed_generation: Generation when condition was observed

    Returns:
        Updated list of conditions
    """
    now = _now()

    existing_idx = None
    for idx, cond in enumerate(conditions):
        if cond.get("type") == condition_type:
            existing_idx = idx
            break

    new_condition: dict[str, Any] = {
        "type": condition_type,
        "status": status,
        "reason": reason,
        "message": message,
        "lastTransitionTime": now,
    }

    if observed_generation is not None:
        new_condition["observedGeneration"] = observed_generation

    if existing_idx is None:
        conditions.append(new_condition)
        return conditions

    existing = conditions[existing_idx]
    if conditions_equal(existing, new_condition):
        return conditions
    if existing.get("status") == status:
        new_condition["lastTransitionTime"] = existing.get("lastTransitionTime", now)
    conditions[existing_idx] = new_condition
    return conditions


def conditions_equal(a: dict[str, Any], b: dict[str, Any]) -> bool:
    """Compare two conditions, ignoring lastTransitionTime."""
    keys = ("type", "status", "reason", "message", "observedGeneration")
    return all(a.get(k, "") == b.get(k, "") for k in keys)


def new_condition(condition_type: str, status: str, reason: str, message: str = "") -> dict[str, Any]:
    """Build a condition dictionary stamped with the current time."""
    return {
        "type": condition_type,
        "status": status,
        "reason": reason,
        "message": message,
        "lastTransitionTime": _now(),
    }


def set_conditions(obj: dict[str, Any], *conditions: dict[str, Any]) -> list[dict[str, Any]]:
    """Set conditions on an object's status, replacing any of the same type.

    Args:
        obj: Kubernetes object dictionary
        *conditions: Conditions built with the factories in this module

    Returns:
        The object's updated conditions list
    """
    status = obj.setdefault("status", {})
    current = status.setdefault("conditions", [])
    for cond in conditions:
        update_condition(
            current,
            cond["type"],
            cond["status"],
            cond.get("reason", ""),
            cond.get("message", ""),
            cond.get("observedGeneration"),
        )
    return current


def get_condition(obj: dict[str, Any], condition_type: str) -> dict[str, Any]:
    """Return the condition of the given type, or an Unknown placeholder."""
    for cond in (obj.get("status") or {}).get("conditions") or []:
        if cond.get("type") == condition_type:
            return cond
    return {"type": condition_type, "status": STATUS_UNKNOWN, "reason": "", "message": ""}


def is_condition_true(obj: dict[str, Any], condition_type: str) -> bool:
    """Check whether the condition of the given type is True."""
    return get_condition(obj, condition_type).get("status") == STATUS_TRUE


# Ready condition factories


def creating() -> dict[str, Any]:
    """The resource is being created."""
    return new_condition(COND_READY, STATUS_FALSE, REASON_CREATING)


def deleting() -> dict[str, Any]:
    """The resource is being deleted."""
    return new_condition(COND_READY, STATUS_FALSE, REASON_DELETING)


def available() -> dict[str, Any]:
    """The resource is available for use."""
    return new_condition(COND_READY, STATUS_TRUE, REASON_AVAILABLE)


def unavailable() -> dict[str, Any]:
    """The resource exists but is not usable."""
    return new_condition(COND_READY, STATUS_FALSE, REASON_UNAVAILABLE)


def binding() -> dict[str, Any]:
    """The claim is waiting to be bound to a managed resource."""
    return new_condition(COND_READY, STATUS_FALSE, REASON_BINDING)


# Synced condition factories


def reconcile_success() -> dict[str, Any]:
    """The last reconcile succeeded."""
    return new_condition(COND_SYNCED, STATUS_TRUE, REASON_RECONCILE_SUCCESS)


def reconcile_error(error: BaseException) -> dict[str, Any]:
    """The last reconcile failed with the given error."""
    return new_condition(
        COND_SYNCED, STATUS_FALSE, REASON_RECONCILE_ERROR, sanitize_exception(error)
    )


# ReferencesResolved condition factories


def reference_resolution_success() -> dict[str, Any]:
    """All references were resolved."""
    return new_condition(COND_REFERENCES_RESOLVED, STATUS_TRUE, REASON_RESOLUTION_SUCCESS)


def reference_resolution_blocked(error: BaseException) -> dict[str, Any]:
    """Resolution is waiting on referenced resources to become ready."""
    return new_condition(
        COND_REFERENCES_RESOLVED,
        STATUS_FALSE,
        REASON_RESOLUTION_BLOCKED,
        sanitize_exception(error),
    )
