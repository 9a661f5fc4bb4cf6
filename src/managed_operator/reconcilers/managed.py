"""Reconciler driving the lifecycle of managed resources and their external resources."""

from __future__ import annotations

import logging
from typing import Any, Protocol

from ..constants import (
    COND_REFERENCES_RESOLVED,
    EVENT_REASON_CONNECT_FAILED,
    EVENT_REASON_CREATE_FAILED,
    EVENT_REASON_CREATED_EXTERNAL,
    EVENT_REASON_DELETE_FAILED,
    EVENT_REASON_DELETED_EXTERNAL,
    EVENT_REASON_INITIALIZE_FAILED,
    EVENT_REASON_OBSERVE_FAILED,
    EVENT_REASON_PUBLISH_FAILED,
    EVENT_REASON_RECONCILE_FAILED,
    EVENT_REASON_RESOLVE_FAILED,
    EVENT_REASON_UPDATE_FAILED,
    EVENT_REASON_UPDATED_EXTERNAL,
    FINALIZER_MANAGED,
    LONG_WAIT,
    SHORT_WAIT,
)
from ..errors import (
    ConflictError,
    NotFoundError,
    ReferenceResolutionError,
    ReferencesAccessError,
    ignore_not_found,
)
from ..resource import Kind, ReclaimPolicy, Request, Result, get_reclaim_policy
from ..services.external.base import ExternalConnecter
from ..services.store.base import StoreClient
from ..utils import meta
from ..utils.conditions import (
    creating,
    deleting,
    is_condition_true,
    reconcile_error,
    reconcile_success,
    reference_resolution_blocked,
    reference_resolution_success,
    set_conditions,
)
from ..utils.events import EventRecorder
from .base import BaseReconciler, controller_name
from .publisher import APISecretPublisher, ConnectionPublisher
from .references import NopReferenceResolver

# Attempts at persisting an external name assigned during create
EXTERNAL_NAME_RETRIES = 3


class Initializer(Protocol):
    def initialize(self, managed: dict[str, Any]) -> None:
        ...


class ReferenceResolver(Protocol):
    def resolve_references(self, managed: dict[str, Any]) -> None:
        ...


class Finalizer(Protocol):
    def add_finalizer(self, obj: dict[str, Any]) -> None:
        ...

    def remove_finalizer(self, obj: dict[str, Any]) -> None:
        ...


class InitializerChain:
    """Runs initializers in order, stopping at the first error."""

    def __init__(self, *initializers: Initializer) -> None:
        self.initializers = list(initializers)

    def initialize(self, managed: dict[str, Any]) -> None:
        for initializer in self.initializers:
            initializer.initialize(managed)


class NameAsExternalName:
    """Uses the managed resource's name as its external name, unless one is set."""

    def __init__(self, store: StoreClient, kind: Kind) -> None:
        self.store = store
        self.kind = kind

    def initialize(self, managed: dict[str, Any]) -> None:
        if meta.get_external_name(managed):
            return
        meta.set_external_name(managed, meta.get_name(managed))
        self.store.update(self.kind, managed)


class APIFinalizer:
    """Adds and removes a finalizer through the Kubernetes API."""

    def __init__(self, store: StoreClient, kind: Kind, finalizer: str) -> None:
        self.store = store
        self.kind = kind
        self.finalizer = finalizer

    def add_finalizer(self, obj: dict[str, Any]) -> None:
        if meta.add_finalizer(obj, self.finalizer):
            self.store.update(self.kind, obj)

    def remove_finalizer(self, obj: dict[str, Any]) -> None:
        if meta.remove_finalizer(obj, self.finalizer):
            with ignore_not_found():
                self.store.update(self.kind, obj)


class FinalizerAdder:
    """Initializer that adds a finalizer before anything external is touched."""

    def __init__(self, finalizer: Finalizer) -> None:
        self.finalizer = finalizer

    def initialize(self, managed: dict[str, Any]) -> None:
        self.finalizer.add_finalizer(managed)


class ManagedReconciler(BaseReconciler):
    """Reconciles a managed resource against the external resource it represents.

    Args:
        store: Client used to read and write objects
        kind: Kind of the managed resource
        connecter: Produces external clients for managed resources
        initializers: Run before anything else; defaults to deriving the
            external name from the object name, then adding the finalizer
        resolver: Resolves cross-resource references
        publisher: Publishes connection details
        finalizer: Finalizer removed once deletion completes
        short_wait: Requeue delay while waiting on the external system or
            after an error
        long_wait: Requeue delay when polling a settled resource
        logger: Logger for structured logs
        recorder: Recorder for Kubernetes events
    """

    def __init__(
        self,
        store: StoreClient,
        kind: Kind,
        connecter: ExternalConnecter,
        initializers: Initializer | None = None,
        resolver: ReferenceResolver | None = None,
        publisher: ConnectionPublisher | None = None,
        finalizer: Finalizer | None = None,
        short_wait: float = SHORT_WAIT,
        long_wait: float = LONG_WAIT,
        logger: logging.Logger | None = None,
        recorder: EventRecorder | None = None,
    ) -> None:
        super().__init__(
            store,
            kind,
            controller_name("managed", kind),
            logger=logger or logging.getLogger(__name__),
            recorder=recorder,
        )
        self.connecter = connecter
        self.finalizer = finalizer or APIFinalizer(store, kind, FINALIZER_MANAGED)
        self.initializers = initializers or InitializerChain(
            NameAsExternalName(store, kind),
            FinalizerAdder(self.finalizer),
        )
        self.resolver = resolver or NopReferenceResolver()
        self.publisher = publisher or APISecretPublisher(store)
        self.short_wait = short_wait
        self.long_wait = long_wait

    def _fail(
        self,
        managed: dict[str, Any],
        reason: str,
        error: Exception,
        *conditions: dict[str, Any],
        ignore_missing: bool = False,
    ) -> Result:
        set_conditions(managed, *conditions, reconcile_error(error))
        result = self.update_status(
            self.kind, managed, Result(self.short_wait), ignore_missing=ignore_missing
        )
        self.record_warning(managed, reason, error)
        return result

    def reconcile(self, request: Request) -> Result:
        try:
            managed = self.store.get(self.kind, request)
        except NotFoundError:
            return Result()

        self.log_debug(managed, "Reconciling", request=str(request))

        try:
            external = self.connecter.connect(managed)
        except Exception as e:
            return self._fail(managed, EVENT_REASON_CONNECT_FAILED, e)

        try:
            self.initializers.initialize(managed)
        except Exception as e:
            return self._fail(managed, EVENT_REASON_INITIALIZE_FAILED, e)

        if not meta.was_deleted(managed) and not is_condition_true(
            managed, COND_REFERENCES_RESOLVED
        ):
            try:
                self.resolver.resolve_references(managed)
            except ReferencesAccessError as e:
                set_conditions(managed, reference_resolution_blocked(e))
                result = self.update_status(self.kind, managed, Result(self.long_wait))
                self.record_warning(managed, EVENT_REASON_RESOLVE_FAILED, e)
                return result
            except ReferenceResolutionError as e:
                return self._fail(managed, EVENT_REASON_RESOLVE_FAILED, e)
            set_conditions(managed, reference_resolution_success())

        try:
            observation = external.observe(managed)
        except Exception as e:
            return self._fail(managed, EVENT_REASON_OBSERVE_FAILED, e)

        if meta.was_deleted(managed):
            return self._reconcile_deletion(managed, external, observation)

        if observation.resource_late_initialized:
            try:
                self.store.update(self.kind, managed)
            except Exception as e:
                return self._fail(managed, EVENT_REASON_RECONCILE_FAILED, e)

        try:
            self.publisher.publish_connection(managed, observation.connection_details)
        except Exception as e:
            return self._fail(managed, EVENT_REASON_PUBLISH_FAILED, e)

        if not observation.resource_exists:
            set_conditions(managed, creating())
            try:
                creation = external.create(managed)
            except Exception as e:
                return self._fail(managed, EVENT_REASON_CREATE_FAILED, e)

            if creation.external_name_assigned:
                try:
                    self._persist_external_name(managed)
                except Exception as e:
                    return self._fail(managed, EVENT_REASON_RECONCILE_FAILED, e)

            try:
                self.publisher.publish_connection(managed, creation.connection_details)
            except Exception as e:
                return self._fail(managed, EVENT_REASON_PUBLISH_FAILED, e)

            self.record_normal(
                managed,
                EVENT_REASON_CREATED_EXTERNAL,
                "Successfully requested creation of external resource",
            )
            set_conditions(managed, reconcile_success())
            return self.update_status(self.kind, managed, Result(self.short_wait))

        if observation.resource_up_to_date:
            self.log_debug(managed, "External resource is up to date")
            set_conditions(managed, reconcile_success())
            return self.update_status(self.kind, managed, Result(self.long_wait))

        try:
            update = external.update(managed)
        except Exception as e:
            return self._fail(managed, EVENT_REASON_UPDATE_FAILED, e)

        try:
            self.publisher.publish_connection(managed, update.connection_details)
        except Exception as e:
            return self._fail(managed, EVENT_REASON_PUBLISH_FAILED, e)

        self.record_normal(
            managed,
            EVENT_REASON_UPDATED_EXTERNAL,
            "Successfully requested update of external resource",
        )
        set_conditions(managed, reconcile_success())
        return self.update_status(self.kind, managed, Result(self.long_wait))

    def _reconcile_deletion(self, managed: dict[str, Any], external: Any, observation: Any) -> Result:
        """Delete the external resource, then release the managed resource.

        The external resource is deleted first and confirmed gone by the next
        observe before the finalizer is removed.
        """
        policy = get_reclaim_policy(managed)
        if observation.resource_exists and policy == ReclaimPolicy.DELETE.value:
            try:
                external.delete(managed)
            except Exception as e:
                return self._fail(managed, EVENT_REASON_DELETE_FAILED, e, deleting())

            self.record_normal(
                managed,
                EVENT_REASON_DELETED_EXTERNAL,
                "Successfully requested deletion of external resource",
            )
            set_conditions(managed, deleting(), reconcile_success())
            return self.update_status(self.kind, managed, Result(self.short_wait))

        try:
            with ignore_not_found():
                self.publisher.unpublish_connection(managed, observation.connection_details)
        except Exception as e:
            return self._fail(
                managed, EVENT_REASON_PUBLISH_FAILED, e, deleting(), ignore_missing=True
            )

        try:
            with ignore_not_found():
                self.finalizer.remove_finalizer(managed)
        except Exception as e:
            return self._fail(
                managed, EVENT_REASON_RECONCILE_FAILED, e, deleting(), ignore_missing=True
            )

        self.log_info(managed, "Successfully deleted managed resource", reason="Deleted")
        return Result()

    def _persist_external_name(self, managed: dict[str, Any]) -> None:
        """Save an external name assigned by create, retrying on conflicts.

        A conflicting write is retried on a fresh copy of the object that
        carries the same external name.
        """
        external_name = meta.get_external_name(managed)
        for attempt in range(EXTERNAL_NAME_RETRIES):
            try:
                self.store.update(self.kind, managed)
                return
            except ConflictError:
                if attempt == EXTERNAL_NAME_RETRIES - 1:
                    raise
            latest = self.store.get(self.kind, Request.from_object(managed))
            latest["status"] = managed.get("status", {})
            meta.set_external_name(latest, external_name)
            managed.clear()
            managed.update(latest)
