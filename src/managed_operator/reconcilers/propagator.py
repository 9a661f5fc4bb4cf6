"""Propagation of connection secrets from managed resources to their claims.

A managed resource's connection secret usually lives in a namespace reserved
for the operator. When a claim binds, the secret's data is copied into the
claim's namespace. Both secrets are annotated with the link:

- the claim's copy gets ``from.propagate.<group>/<source-uid>: <ns>/<name>``
- the source gets ``to.propagate.<group>/<copy-uid>: <ns>/<name>``

:class:`SecretPropagatingReconciler` uses those annotations to keep the copy
in sync after the source changes.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

from ..constants import ANNOTATION_PROPAGATE_FROM_PREFIX, ANNOTATION_PROPAGATE_TO_PREFIX
from ..errors import NotFoundError, PropagationError, StoreError
from ..resource import (
    Kind,
    Request,
    Result,
    get_claim_connection_secret_reference,
    get_write_connection_secret_to_reference,
)
from ..services.store.base import StoreClient
from ..utils import meta
from ..utils.events import EventRecorder
from ..utils.secrets import connection_secret_for
from .base import BaseReconciler

SECRET_KIND = Kind(group="", version="v1", kind="Secret", plural="secrets")


class ManagedConnectionPropagator(Protocol):
    def propagate_connection(self, to: dict[str, Any], managed: dict[str, Any]) -> None:
        ...


class APIManagedConnectionPropagator:
    """Copies a managed resource's connection secret into its claim's namespace."""

    def __init__(self, store: StoreClient) -> None:
        self.store = store

    def propagate_connection(self, to: dict[str, Any], managed: dict[str, Any]) -> None:
        """Propagate connection details from ``managed`` to ``to``.

        Args:
            to: Claim receiving the connection details
            managed: Managed resource whose connection secret is the source

        Raises:
            PropagationError: If the source is not controlled by ``managed``,
                the destination is controlled by another object, or any read
                or write fails
        """
        from_ref = get_write_connection_secret_to_reference(managed)
        to_ref = get_claim_connection_secret_reference(to)
        if from_ref is None or to_ref is None:
            return

        try:
            source = self.store.get_secret(from_ref["namespace"], from_ref["name"])
        except StoreError as e:
            raise PropagationError("cannot get managed resource's connection secret") from e

        if not meta.is_controlled_by(source, meta.get_uid(managed)):
            raise PropagationError(
                "refusing to propagate a connection secret not controlled by the managed resource"
            )

        destination = self._apply_destination(to, to_ref, source)

        meta.set_annotations(
            source,
            {
                ANNOTATION_PROPAGATE_TO_PREFIX
                + meta.get_uid(destination): f"{to_ref['namespace']}/{to_ref['name']}"
            },
        )
        try:
            self.store.update_secret(source)
        except StoreError as e:
            raise PropagationError("cannot annotate managed resource's connection secret") from e

    def _apply_destination(
        self, to: dict[str, Any], to_ref: dict[str, str], source: dict[str, Any]
    ) -> dict[str, Any]:
        annotation = {
            ANNOTATION_PROPAGATE_FROM_PREFIX
            + meta.get_uid(source): f"{meta.get_namespace(source)}/{meta.get_name(source)}"
        }
        try:
            try:
                existing = self.store.get_secret(to_ref["namespace"], to_ref["name"])
            except NotFoundError:
                destination = connection_secret_for(to, to_ref["namespace"], to_ref["name"])
                destination["data"] = dict(source.get("data") or {})
                meta.set_annotations(destination, annotation)
                self.store.create_secret(destination)
                return destination

            owner = meta.get_controller_of(existing)
            if owner is not None and owner.get("uid") != meta.get_uid(to):
                raise PropagationError(
                    f"secret {to_ref['namespace']}/{to_ref['name']} is controlled by another object"
                )
            existing["data"] = dict(source.get("data") or {})
            meta.set_annotations(existing, annotation)
            self.store.update_secret(existing)
            return existing
        except StoreError as e:
            raise PropagationError("cannot create or update propagated connection secret") from e


def parse_propagated_from(secret: dict[str, Any]) -> tuple[str, str, str] | None:
    """Find the source a propagated secret was copied from.

    Returns:
        ``(uid, namespace, name)`` of the source, or None if the secret is
        not a propagated copy

    Raises:
        PropagationError: If the annotation value is malformed
    """
    for key, value in meta.get_annotations(secret).items():
        if not key.startswith(ANNOTATION_PROPAGATE_FROM_PREFIX):
            continue
        uid = key[len(ANNOTATION_PROPAGATE_FROM_PREFIX):]
        parts = value.split("/")
        if not uid or len(parts) != 2 or not all(parts):
            raise PropagationError("invalid format in propagated secret annotations")
        return uid, parts[0], parts[1]
    return None


def propagation_targets(secret: dict[str, Any]) -> list[Request]:
    """List the secrets a source secret has consented to propagate to."""
    targets = []
    for key, value in meta.get_annotations(secret).items():
        if not key.startswith(ANNOTATION_PROPAGATE_TO_PREFIX):
            continue
        parts = value.split("/")
        if len(parts) != 2 or not all(parts):
            continue
        targets.append(Request(parts[0], parts[1]))
    return targets


class SecretPropagatingReconciler(BaseReconciler):
    """Keeps propagated connection secrets in sync with their sources.

    Reconcile requests name the propagated copy. Data is only copied when
    the copy names its source by UID and the source names the copy by UID.
    """

    def __init__(
        self,
        store: StoreClient,
        logger: logging.Logger | None = None,
        recorder: EventRecorder | None = None,
    ) -> None:
        super().__init__(
            store,
            SECRET_KIND,
            "secretpropagator",
            logger=logger or logging.getLogger(__name__),
            recorder=recorder,
        )

    def reconcile(self, request: Request) -> Result:
        try:
            to = self.store.get_secret(request.namespace, request.name)
        except NotFoundError:
            return Result()

        source = parse_propagated_from(to)
        if source is None:
            return Result()
        from_uid, from_namespace, from_name = source

        try:
            from_secret = self.store.get_secret(from_namespace, from_name)
        except NotFoundError:
            return Result()

        if meta.get_uid(from_secret) != from_uid:
            raise PropagationError("unexpected propagate from uid on propagated secret")

        if ANNOTATION_PROPAGATE_TO_PREFIX + meta.get_uid(to) not in meta.get_annotations(
            from_secret
        ):
            raise PropagationError("unexpected propagate to uid on propagator secret")

        if (to.get("data") or {}) == (from_secret.get("data") or {}):
            return Result()

        to["data"] = dict(from_secret.get("data") or {})
        self.store.update_secret(to)
        self.log_info(to, "Propagated connection secret", reason="Propagated")
        return Result()
