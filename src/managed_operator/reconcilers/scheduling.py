"""Reconcilers assigning resource classes to claims that do not name one.

Several operator replicas may race to schedule the same claim. Each replica
picks a class at random, waits a random jitter, and writes the claim with
optimistic concurrency. The replica that loses the race gets a conflict and
stops; the next reconcile sees the class reference and does nothing.
"""

from __future__ import annotations

import logging
import random
import time
from typing import Any, Callable

from ..constants import ANNOTATION_DEFAULT_CLASS, EVENT_REASON_CLASS_SELECTED, MAX_JITTER
from ..errors import ConflictError, NotFoundError
from ..resource import (
    Kind,
    Request,
    Result,
    get_class_reference,
    get_class_selector,
    set_class_reference,
)
from ..services.store.base import StoreClient
from ..utils import meta
from ..utils.events import EventRecorder
from .base import BaseReconciler, controller_name


def random_jitter(max_jitter: float = MAX_JITTER) -> Callable[[], None]:
    """Return a function sleeping a uniformly random time in ``[0, max_jitter)``."""

    def jitter() -> None:
        time.sleep(random.random() * max_jitter)

    return jitter


class _ClassAssigningReconciler(BaseReconciler):
    """Shared flow of the scheduling and defaulting reconcilers."""

    prefix = ""

    def __init__(
        self,
        store: StoreClient,
        claim_kind: Kind,
        class_kind: Kind,
        jitter: Callable[[], None] | None = None,
        rng: random.Random | None = None,
        logger: logging.Logger | None = None,
        recorder: EventRecorder | None = None,
    ) -> None:
        super().__init__(
            store,
            claim_kind,
            controller_name(self.prefix, claim_kind),
            logger=logger or logging.getLogger(__name__),
            recorder=recorder,
        )
        self.class_kind = class_kind
        self.jitter = jitter or random_jitter()
        self.rng = rng or random.Random()

    def candidates(self, claim: dict[str, Any]) -> list[dict[str, Any]] | None:
        """Return the classes the claim may be assigned, or None to skip the claim."""
        raise NotImplementedError

    def reconcile(self, request: Request) -> Result:
        try:
            claim = self.store.get(self.kind, request)
        except NotFoundError:
            return Result()

        if get_class_reference(claim) is not None:
            return Result()

        classes = self.candidates(claim)
        if not classes:
            return Result()

        selected = self.rng.choice(classes)
        set_class_reference(claim, meta.reference_to(selected))

        self.jitter()

        try:
            self.store.update(self.kind, claim)
        except ConflictError:
            self.log_debug(claim, "Another replica assigned a class first", reason="Conflict")
            return Result()

        self.record_normal(
            claim,
            EVENT_REASON_CLASS_SELECTED,
            f"Selected resource class {meta.get_name(selected)}",
        )
        return Result()


class ClaimSchedulingReconciler(_ClassAssigningReconciler):
    """Assigns a class matching the claim's class selector."""

    prefix = "scheduler"

    def candidates(self, claim: dict[str, Any]) -> list[dict[str, Any]] | None:
        selector = get_class_selector(claim)
        if selector is None:
            return None
        return self.store.list(self.class_kind, label_selector=selector.get("matchLabels") or {})


class ClaimDefaultingReconciler(_ClassAssigningReconciler):
    """Assigns a class annotated as default to claims without a class selector."""

    prefix = "defaultclass"

    def candidates(self, claim: dict[str, Any]) -> list[dict[str, Any]] | None:
        if get_class_selector(claim) is not None:
            return None
        return [
            cls
            for cls in self.store.list(self.class_kind)
            if meta.get_annotations(cls).get(ANNOTATION_DEFAULT_CLASS) == "true"
        ]
