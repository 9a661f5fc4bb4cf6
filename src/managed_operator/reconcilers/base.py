"""Base reconciler class with common functionality for all controllers."""

from __future__ import annotations

import logging
import time
from typing import Any

from .. import metrics
from ..errors import NotFoundError
from ..logging import log_resource_event
from ..resource import Kind, Request, Result
from ..services.store.base import StoreClient
from ..utils.errors import sanitize_exception
from ..utils.events import EventRecorder, NopEventRecorder


class BaseReconciler:
    """Base class for reconcilers with logging, events, metrics and status writes."""

    def __init__(
        self,
        store: StoreClient,
        kind: Kind,
        name: str,
        logger: logging.Logger | None = None,
        recorder: EventRecorder | None = None,
    ):
        """Initialize base reconciler.

        Args:
            store: Client used to read and write objects
            kind: Kind of the object this reconciler is keyed on
            name: Controller name used in logs and metrics
            logger: Logger to write structured logs to
            recorder: Recorder for Kubernetes events, events are dropped if omitted
        """
        self.store = store
        self.kind = kind
        self.name = name
        self.logger = logger or logging.getLogger(__name__)
        self.recorder = recorder or NopEventRecorder()

    def reconcile(self, request: Request) -> Result:
        raise NotImplementedError

    def _get_resource_context(self, obj: dict[str, Any]) -> dict[str, Any]:
        meta = obj.get("metadata") or {}
        return {
            "name": meta.get("name", "unknown"),
            "namespace": meta.get("namespace", ""),
            "uid": meta.get("uid", "unknown"),
        }

    def _log(
        self,
        level: int,
        obj: dict[str, Any],
        message: str,
        event: str,
        reason: str,
        **kwargs: Any,
    ) -> None:
        ctx = self._get_resource_context(obj)
        log_resource_event(
            self.logger,
            controller=self.name,
            resource_kind=obj.get("kind") or self.kind.kind,
            resource_name=ctx["name"],
            namespace=ctx["namespace"],
            uid=ctx["uid"],
            event=event,
            reason=reason,
            message=message,
            level=level,
            **kwargs,
        )

    def log_debug(self, obj: dict[str, Any], message: str, reason: str = "Debug", **kwargs: Any) -> None:
        self._log(logging.DEBUG, obj, message, "debug", reason, **kwargs)

    def log_info(self, obj: dict[str, Any], message: str, reason: str = "Info", **kwargs: Any) -> None:
        self._log(logging.INFO, obj, message, "info", reason, **kwargs)

    def log_warning(
        self, obj: dict[str, Any], message: str, reason: str = "Warning", **kwargs: Any
    ) -> None:
        self._log(logging.WARNING, obj, message, "warning", reason, **kwargs)

    def record_normal(self, obj: dict[str, Any], reason: str, message: str) -> None:
        """Emit a Normal event and log it."""
        self.log_info(obj, message, reason=reason)
        self.recorder.normal(obj, reason, message)

    def record_warning(self, obj: dict[str, Any], reason: str, error: BaseException) -> None:
        """Emit a Warning event for an error and log it."""
        self.log_warning(
            obj,
            sanitize_exception(error),
            reason=reason,
            error_type=type(error).__name__,
        )
        self.recorder.warning(obj, reason, sanitize_exception(error))

    def update_status(
        self, kind: Kind, obj: dict[str, Any], result: Result, ignore_missing: bool = False
    ) -> Result:
        """Persist the object's status, then return ``result``.

        A failed write is raised so the caller's retry mechanism runs the
        whole reconcile again.
        """
        try:
            self.store.update_status(kind, obj)
        except NotFoundError:
            if not ignore_missing:
                raise
            return Result()
        return result

    def reconcile_with_metrics(self, request: Request) -> Result:
        """Run reconcile, recording its outcome and duration."""
        start_time = time.time()
        try:
            result = self.reconcile(request)
        except Exception as e:
            metrics.error_total.labels(controller=self.name, error_type=type(e).__name__).inc()
            metrics.reconcile_total.labels(controller=self.name, result="error").inc()
            raise
        finally:
            duration = time.time() - start_time
            metrics.reconcile_duration_seconds.labels(controller=self.name).observe(duration)

        outcome = "requeue" if result.requeue else "success"
        metrics.reconcile_total.labels(controller=self.name, result=outcome).inc()
        return result


def controller_name(prefix: str, kind: Kind) -> str:
    """Name a controller after what it reconciles, e.g. ``managed/bucket``."""
    return f"{prefix}/{kind.kind.lower()}"
