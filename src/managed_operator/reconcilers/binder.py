"""Creating, binding and unbinding managed resources on behalf of claims."""

from __future__ import annotations

from typing import Any, Protocol

from ..errors import BindingError, NotFoundError, ignore_not_found
from ..resource import (
    BindingPhase,
    Kind,
    ReclaimPolicy,
    get_claim_reference,
    get_reclaim_policy,
    set_binding_phase,
    set_claim_reference,
    set_class_reference,
    set_resource_reference,
)
from ..services.store.base import StoreClient
from ..utils import meta


class ManagedCreator(Protocol):
    def create(
        self, claim: dict[str, Any], cls: dict[str, Any], managed: dict[str, Any]
    ) -> None:
        ...


class Binder(Protocol):
    def bind(self, claim: dict[str, Any], managed: dict[str, Any]) -> None:
        ...

    def unbind(self, claim: dict[str, Any], managed: dict[str, Any]) -> None:
        ...


class APIManagedCreator:
    """Creates a managed resource for a claim and records it on the claim."""

    def __init__(self, store: StoreClient, claim_kind: Kind, managed_kind: Kind) -> None:
        self.store = store
        self.claim_kind = claim_kind
        self.managed_kind = managed_kind

    def create(
        self, claim: dict[str, Any], cls: dict[str, Any], managed: dict[str, Any]
    ) -> None:
        """Create ``managed`` pointing back at ``claim`` and ``cls``.

        Raises:
            StoreError: If the managed resource or the claim cannot be written
        """
        set_claim_reference(managed, meta.reference_to(claim))
        set_class_reference(managed, meta.reference_to(cls))
        if self.managed_kind.namespaced and not meta.get_namespace(managed):
            meta.metadata(managed)["namespace"] = meta.get_namespace(claim)

        self.store.create(self.managed_kind, managed)

        set_resource_reference(claim, meta.reference_to(managed))
        self.store.update(self.claim_kind, claim)


class APIStatusBinder:
    """Binds claims to managed resources whose binding phase is a status field."""

    def __init__(self, store: StoreClient, claim_kind: Kind, managed_kind: Kind) -> None:
        self.store = store
        self.claim_kind = claim_kind
        self.managed_kind = managed_kind

    def bind(self, claim: dict[str, Any], managed: dict[str, Any]) -> None:
        """Bind ``claim`` and ``managed`` to each other.

        The claim's Bound phase is set in memory only; the claim reconciler
        persists it with the claim's status.

        Raises:
            BindingError: If the managed resource is controlled by another
                object, or already claimed by a different claim
        """
        if meta.get_controller_of(managed) is not None:
            raise BindingError(
                "refusing to bind to managed resource that is controlled by another resource"
            )

        claim_ref = meta.reference_to(claim)
        existing = get_claim_reference(managed)
        if existing and not meta.equal_references(claim_ref, existing):
            raise BindingError(
                "refusing to bind to managed resource that does not reference resource claim"
            )

        set_binding_phase(claim, BindingPhase.BOUND)

        set_claim_reference(managed, claim_ref)
        self.store.update(self.managed_kind, managed)

        set_binding_phase(managed, BindingPhase.BOUND)
        self.store.update_status(self.managed_kind, managed)

        external_name = meta.get_external_name(managed)
        if not external_name:
            return
        meta.set_external_name(claim, external_name)
        self.store.update(self.claim_kind, claim)

    def unbind(self, claim: dict[str, Any], managed: dict[str, Any]) -> None:
        """Release ``managed`` from ``claim``, deleting it if its reclaim policy is Delete.

        A managed resource that is already gone counts as unbound.

        Raises:
            BindingError: If the managed resource does not reference the claim
        """
        if not meta.equal_references(meta.reference_to(claim), get_claim_reference(managed)):
            raise BindingError(
                "refusing to unbind from managed resource that does not reference resource claim"
            )

        set_claim_reference(managed, None)
        try:
            self.store.update(self.managed_kind, managed)
        except NotFoundError:
            return

        set_binding_phase(managed, BindingPhase.RELEASED)
        try:
            self.store.update_status(self.managed_kind, managed)
        except NotFoundError:
            return

        if get_reclaim_policy(managed) != ReclaimPolicy.DELETE.value:
            return
        with ignore_not_found():
            self.store.delete(self.managed_kind, managed)


class APIClaimFinalizer:
    """Adds and removes the claim finalizer through the Kubernetes API."""

    def __init__(self, store: StoreClient, claim_kind: Kind, finalizer: str) -> None:
        self.store = store
        self.claim_kind = claim_kind
        self.finalizer = finalizer

    def add_finalizer(self, claim: dict[str, Any]) -> None:
        if meta.add_finalizer(claim, self.finalizer):
            self.store.update(self.claim_kind, claim)

    def remove_finalizer(self, claim: dict[str, Any]) -> None:
        if meta.remove_finalizer(claim, self.finalizer):
            with ignore_not_found():
                self.store.update(self.claim_kind, claim)
