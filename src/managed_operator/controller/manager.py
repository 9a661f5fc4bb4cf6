"""Wires reconcilers to kopf watch events through per-controller work queues.

kopf delivers every watch event for a resource to a small handler that maps
the event's object to reconcile requests and queues them. Worker threads
take requests off the queues and run the reconcilers, so requeue delays and
error backoff are decided by the reconcilers rather than by kopf.
"""

from __future__ import annotations

import contextvars
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Mapping

import kopf

from .. import metrics
from ..constants import MAX_WORKERS, RECONCILE_TIMEOUT
from ..errors import PropagationError, ReferencerDefinitionError
from ..reconcilers.base import BaseReconciler
from ..reconcilers.propagator import parse_propagated_from, propagation_targets
from ..resource import Kind, Request, get_claim_reference
from ..utils.context import reconcile_deadline, with_correlation_id
from ..utils.errors import sanitize_exception
from .queue import WorkQueue

logger = logging.getLogger(__name__)

Mapper = Callable[[Mapping[str, Any]], Iterable[Request]]


def enqueue_request_for_object(obj: Mapping[str, Any]) -> list[Request]:
    """Map an object to a request for itself."""
    return [Request.from_object(obj)]


def enqueue_request_for_claim(obj: Mapping[str, Any]) -> list[Request]:
    """Map a managed resource to a request for the claim it is bound to."""
    ref = get_claim_reference(obj)
    if not ref or not ref.get("name"):
        return []
    return [Request.from_reference(ref)]


def enqueue_request_for_propagated(obj: Mapping[str, Any]) -> list[Request]:
    """Map a secret to the propagated copies it is linked to.

    A propagated copy maps to itself and a source maps to every copy it
    names, so an edit to either side brings the copy back in sync.
    """
    requests = propagation_targets(obj)
    try:
        if parse_propagated_from(obj) is not None:
            requests.append(Request.from_object(obj))
    except PropagationError:
        logger.debug("Ignoring secret with malformed propagation annotations")
    return requests


@dataclass
class Watch:
    """Watch events on ``kind`` and queue the requests ``mapper`` returns."""

    kind: Kind
    mapper: Mapper = enqueue_request_for_object


@dataclass
class Controller:
    """A reconciler with its work queue and worker threads."""

    name: str
    reconciler: BaseReconciler
    queue: WorkQueue
    workers: int
    threads: list[threading.Thread] = field(default_factory=list)


class Manager:
    """Runs controllers: registers their watches with kopf and drives their workers.

    Args:
        timeout: Deadline for a single reconcile, in seconds
        workers: Default number of worker threads per controller
        registry: kopf registry to register handlers with, the default
            registry if omitted
    """

    def __init__(
        self,
        timeout: float = RECONCILE_TIMEOUT,
        workers: int = MAX_WORKERS,
        registry: kopf.OperatorRegistry | None = None,
    ) -> None:
        self.timeout = timeout
        self.workers = workers
        self.registry = registry
        self.controllers: list[Controller] = []
        self._running = False

    def add_controller(
        self,
        reconciler: BaseReconciler,
        watches: Iterable[Watch],
        workers: int | None = None,
    ) -> Controller:
        """Register a reconciler and the watches feeding its queue."""
        controller = Controller(
            name=reconciler.name,
            reconciler=reconciler,
            queue=WorkQueue(reconciler.name),
            workers=workers or self.workers,
        )
        for watch in watches:
            self._register_watch(controller, watch)
        self.controllers.append(controller)
        return controller

    def _register_watch(self, controller: Controller, watch: Watch) -> None:
        kind = watch.kind
        mapper = watch.mapper
        queue = controller.queue

        def on_event(body: kopf.Body, **_: Any) -> None:
            for request in mapper(body):
                queue.add(request)

        kwargs: dict[str, Any] = {}
        if self.registry is not None:
            kwargs["registry"] = self.registry
        kopf.on.event(
            group=kind.group,
            version=kind.version,
            plural=kind.plural,
            id=f"{controller.name}/{kind.plural}/{mapper.__name__}",
            **kwargs,
        )(on_event)

    def process_next(self, controller: Controller, timeout: float | None = None) -> bool:
        """Take one request off the controller's queue and reconcile it.

        Returns:
            False once the queue has shut down or nothing arrived within
            ``timeout``, True otherwise
        """
        request = controller.queue.get(timeout=timeout)
        if request is None:
            return False

        queue = controller.queue
        try:
            with with_correlation_id(), reconcile_deadline(self.timeout):
                result = controller.reconciler.reconcile_with_metrics(request)
        except ReferencerDefinitionError as e:
            # A broken referencer fails the same way on every attempt.
            logger.error(
                f"Dropping {request} in {controller.name}: {sanitize_exception(e)}"
            )
            queue.forget(request)
        except Exception as e:
            logger.warning(
                f"Reconcile of {request} in {controller.name} failed, retrying: "
                f"{sanitize_exception(e)}"
            )
            metrics.requeue_total.labels(controller=controller.name, kind="error").inc()
            queue.add_rate_limited(request)
        else:
            queue.forget(request)
            if result.requeue_after is not None:
                metrics.requeue_total.labels(controller=controller.name, kind="after").inc()
                queue.add_after(request, result.requeue_after)
        finally:
            queue.done(request)
        return True

    def _run_worker(self, controller: Controller) -> None:
        while self.process_next(controller):
            pass

    def start(self) -> None:
        """Start the worker threads of every controller.

        Each thread runs in a copy of the caller's context, so calling this
        from a kopf handler lets reconcilers post Kubernetes events.
        """
        if self._running:
            return
        self._running = True
        for controller in self.controllers:
            for i in range(controller.workers):
                ctx = contextvars.copy_context()
                thread = threading.Thread(
                    target=ctx.run,
                    args=(self._run_worker, controller),
                    name=f"{controller.name}-{i}",
                    daemon=True,
                )
                thread.start()
                controller.threads.append(thread)
        logger.info(f"Started {len(self.controllers)} controllers")

    def stop(self, timeout: float = 10.0) -> None:
        """Shut down the queues and wait for in-flight reconciles to finish."""
        self._running = False
        for controller in self.controllers:
            controller.queue.shut_down()
        for controller in self.controllers:
            for thread in controller.threads:
                thread.join(timeout)
            controller.threads.clear()
        logger.info("Stopped all controllers")

    def is_running(self) -> bool:
        return self._running
