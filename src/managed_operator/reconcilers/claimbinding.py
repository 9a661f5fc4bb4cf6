"""Reconciler binding resource claims to managed resources."""

from __future__ import annotations

import logging
from typing import Any

from ..constants import (
    EVENT_REASON_BIND_FAILED,
    EVENT_REASON_BOUND,
    EVENT_REASON_CONFIGURE_FAILED,
    EVENT_REASON_CREATED_MANAGED,
    EVENT_REASON_PROPAGATE_FAILED,
    EVENT_REASON_RECONCILE_FAILED,
    EVENT_REASON_UNBIND_FAILED,
    EVENT_REASON_UNBOUND,
    FINALIZER_CLAIM,
    SHORT_WAIT,
)
from ..errors import NotFoundError
from ..resource import (
    Kind,
    Request,
    Result,
    get_claim_reference,
    get_class_reference,
    get_resource_reference,
    is_bindable,
    is_bound,
    was_created,
)
from ..services.store.base import StoreClient
from ..utils import meta
from ..utils.conditions import (
    available,
    binding,
    creating,
    deleting,
    reconcile_error,
    reconcile_success,
    set_conditions,
)
from ..utils.events import EventRecorder
from .base import BaseReconciler, controller_name
from .binder import APIClaimFinalizer, APIManagedCreator, APIStatusBinder, Binder, ManagedCreator
from .configurators import ManagedConfigurator, default_configurators
from .managed import Finalizer
from .propagator import APIManagedConnectionPropagator, ManagedConnectionPropagator


class ClaimReconciler(BaseReconciler):
    """Binds claims of one kind to managed resources, provisioning them from classes.

    Args:
        store: Client used to read and write objects
        claim_kind: Kind of the claim
        class_kind: Kind of the resource class
        managed_kind: Kind of the managed resource
        configurator: Prepares a new managed resource from claim and class
        creator: Creates the managed resource
        propagator: Copies connection details to the claim's secret
        binder: Binds and unbinds claims and managed resources
        finalizer: Claim finalizer
        short_wait: Requeue delay while waiting to bind or after an error
        logger: Logger for structured logs
        recorder: Recorder for Kubernetes events
    """

    def __init__(
        self,
        store: StoreClient,
        claim_kind: Kind,
        class_kind: Kind,
        managed_kind: Kind,
        configurator: ManagedConfigurator | None = None,
        creator: ManagedCreator | None = None,
        propagator: ManagedConnectionPropagator | None = None,
        binder: Binder | None = None,
        finalizer: Finalizer | None = None,
        short_wait: float = SHORT_WAIT,
        logger: logging.Logger | None = None,
        recorder: EventRecorder | None = None,
    ) -> None:
        super().__init__(
            store,
            claim_kind,
            controller_name("claimbinding", claim_kind),
            logger=logger or logging.getLogger(__name__),
            recorder=recorder,
        )
        self.class_kind = class_kind
        self.managed_kind = managed_kind
        self.configurator = configurator or default_configurators()
        self.creator = creator or APIManagedCreator(store, claim_kind, managed_kind)
        self.propagator = propagator or APIManagedConnectionPropagator(store)
        self.binder = binder or APIStatusBinder(store, claim_kind, managed_kind)
        self.finalizer = finalizer or APIClaimFinalizer(store, claim_kind, FINALIZER_CLAIM)
        self.short_wait = short_wait

    def _fail(
        self, claim: dict[str, Any], reason: str, error: Exception, *conditions: dict[str, Any]
    ) -> Result:
        set_conditions(claim, *conditions, reconcile_error(error))
        result = self.update_status(self.kind, claim, Result(self.short_wait))
        self.record_warning(claim, reason, error)
        return result

    def reconcile(self, request: Request) -> Result:
        try:
            claim = self.store.get(self.kind, request)
        except NotFoundError:
            return Result()

        self.log_debug(claim, "Reconciling", request=str(request))

        managed = self.managed_kind.new()
        ref = get_resource_reference(claim)
        if ref is not None:
            try:
                managed = self.store.get(self.managed_kind, Request.from_reference(ref))
            except NotFoundError:
                if not meta.was_deleted(claim):
                    self.log_info(
                        claim, "Referenced managed resource not found", reason="ManagedNotFound"
                    )
                    set_conditions(claim, binding(), reconcile_success())
                    return self.update_status(self.kind, claim, Result(self.short_wait))
            except Exception as e:
                return self._fail(claim, EVENT_REASON_RECONCILE_FAILED, e)

        if meta.was_deleted(claim):
            return self._reconcile_deletion(claim, managed)

        if not was_created(managed) and get_class_reference(claim) is not None:
            try:
                cls = self.store.get(
                    self.class_kind, Request.from_reference(get_class_reference(claim))
                )
            except Exception as e:
                return self._fail(claim, EVENT_REASON_CONFIGURE_FAILED, e, creating())

            try:
                self.configurator.configure(claim, cls, managed)
            except Exception as e:
                return self._fail(claim, EVENT_REASON_CONFIGURE_FAILED, e, creating())

            try:
                self.creator.create(claim, cls, managed)
            except Exception as e:
                return self._fail(claim, EVENT_REASON_RECONCILE_FAILED, e, creating())

            self.record_normal(
                claim, EVENT_REASON_CREATED_MANAGED, "Successfully created managed resource"
            )

        if not is_bindable(managed) and not is_bound(managed):
            self.log_debug(claim, "Managed resource is not yet bindable", reason="WaitingToBind")
            set_conditions(claim, binding(), reconcile_success())
            if get_claim_reference(managed) is None:
                # Statically provisioned: nothing watched links the two yet.
                return self.update_status(self.kind, claim, Result(self.short_wait))
            return self.update_status(self.kind, claim, Result())

        if is_bindable(managed):
            try:
                self.propagator.propagate_connection(claim, managed)
            except Exception as e:
                return self._fail(claim, EVENT_REASON_PROPAGATE_FAILED, e, binding())

            try:
                self.finalizer.add_finalizer(claim)
            except Exception as e:
                return self._fail(claim, EVENT_REASON_RECONCILE_FAILED, e, creating())

            try:
                self.binder.bind(claim, managed)
            except Exception as e:
                return self._fail(claim, EVENT_REASON_BIND_FAILED, e, binding())

            self.record_normal(claim, EVENT_REASON_BOUND, "Successfully bound managed resource")

        set_conditions(claim, available(), reconcile_success())
        return self.update_status(self.kind, claim, Result())

    def _reconcile_deletion(self, claim: dict[str, Any], managed: dict[str, Any]) -> Result:
        if was_created(managed):
            try:
                self.binder.unbind(claim, managed)
            except Exception as e:
                return self._fail(claim, EVENT_REASON_UNBIND_FAILED, e, deleting())
            self.record_normal(
                claim, EVENT_REASON_UNBOUND, "Successfully unbound managed resource"
            )

        try:
            self.finalizer.remove_finalizer(claim)
        except Exception as e:
            return self._fail(claim, EVENT_REASON_RECONCILE_FAILED, e, deleting())

        self.log_info(claim, "Successfully deleted resource claim", reason="Deleted")
        return Result()
