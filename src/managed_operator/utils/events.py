"""Utilities for emitting Kubernetes events."""

from __future__ import annotations

import logging
from typing import Any

import kopf

from .errors import sanitize_exception

logger = logging.getLogger(__name__)

EVENT_TYPE_NORMAL = "Normal"
EVENT_TYPE_WARNING = "Warning"


def emit_event(
    obj: dict[str, Any],
    reason: str,
    message: str,
    type_: str = EVENT_TYPE_NORMAL,
) -> None:
    """Emit a Kubernetes event.

    A failure to post the event is logged and does not propagate.

    Args:
        obj: Object the event is about (needs apiVersion, kind and metadata)
        reason: Event reason
        message: Event message
        type_: Event type (Normal or Warning)
    """
    try:
        kopf.event(
            obj,
            reason=reason,
            message=message,
            type=type_,
        )
    except Exception as e:
        logger.warning(f"Failed to emit {type_} event {reason}: {sanitize_exception(e)}")


class EventRecorder:
    """Records Kubernetes events about reconciled objects."""

    def normal(self, obj: dict[str, Any], reason: str, message: str) -> None:
        emit_event(obj, reason, message)

    def warning(self, obj: dict[str, Any], reason: str, message: str) -> None:
        emit_event(obj, reason, message, type_=EVENT_TYPE_WARNING)


class NopEventRecorder(EventRecorder):
    """An EventRecorder that discards every event."""

    def normal(self, obj: dict[str, Any], reason: str, message: str) -> None:
        pass

    def warning(self, obj: dict[str, Any], reason: str, message: str) -> None:
        pass
