"""Resolution of cross-resource references on managed resources.

A managed resource may refer to other objects by name, for example a bucket
policy naming the bucket it applies to. Each such reference is described by
a :class:`Referencer` registered with the resolver when the controller is
built. Resolution is all-or-nothing: values are only written onto the
managed resource once every referenced object exists and is ready.
"""

from __future__ import annotations

import copy
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable

from ..errors import (
    NotFoundError,
    ReferenceResolutionError,
    ReferencerDefinitionError,
    ReferencesAccessError,
    StoreError,
)
from ..resource import Kind, Request
from ..services.store.base import StoreClient
from ..utils.conditions import is_condition_true
from ..utils.fieldpath import get_field, set_field, split_path
from ..utils.meta import get_external_name, get_namespace


class ReferenceStatusType(str, Enum):
    UNKNOWN = "ReferenceStatusUnknown"
    NOT_FOUND = "ReferenceNotFound"
    NOT_READY = "ReferenceNotReady"
    READY = "ReferenceReady"


@dataclass(frozen=True)
class ReferenceStatus:
    """Readiness of one referenced object."""

    name: str
    status: ReferenceStatusType = ReferenceStatusType.UNKNOWN

    @property
    def is_ready(self) -> bool:
        return self.status == ReferenceStatusType.READY

    def __str__(self) -> str:
        return f"{{reference:{self.name} status:{self.status.value}}}"


class Referencer(ABC):
    """Resolves one reference from a managed resource to another object."""

    def is_set(self, root: dict[str, Any]) -> bool:
        """Whether the reference is present on ``root`` and must be resolved."""
        return True

    @abstractmethod
    def get_status(self, store: StoreClient, root: dict[str, Any]) -> list[ReferenceStatus]:
        """Look up the referenced objects and report their readiness."""

    @abstractmethod
    def build(self, store: StoreClient, root: dict[str, Any]) -> Any:
        """Compute the value to write onto ``root`` from the referenced object."""

    @abstractmethod
    def assign(self, root: dict[str, Any], value: Any) -> None:
        """Write a built value onto ``root``."""


class FieldReferencer(Referencer):
    """Resolves a ``{name, namespace}`` reference held at a field path.

    Args:
        kind: Kind of the referenced object
        ref_path: Path of the reference on the managed resource,
            e.g. ``spec.forProvider.bucketRef``
        target_path: Path the resolved value is written to,
            e.g. ``spec.forProvider.bucket``
        value_path: Path of the value on the referenced object; the
            referent's external name (or name) is used if omitted

    Raises:
        ReferencerDefinitionError: If a path is empty or malformed
    """

    def __init__(
        self,
        kind: Kind,
        ref_path: str,
        target_path: str,
        value_path: str | None = None,
    ) -> None:
        for path in (ref_path, target_path, value_path):
            if path is None:
                continue
            try:
                split_path(path)
            except ValueError as e:
                raise ReferencerDefinitionError(str(e)) from e
        self.kind = kind
        self.ref_path = ref_path
        self.target_path = target_path
        self.value_path = value_path

    def _request(self, root: dict[str, Any]) -> Request:
        ref = get_field(root, self.ref_path)
        name = ref.get("name") if isinstance(ref, dict) else None
        if not name:
            raise ValueError(f"{self.ref_path}.name is not set")
        namespace = ref.get("namespace") or (get_namespace(root) if self.kind.namespaced else "")
        return Request(namespace, name)

    def is_set(self, root: dict[str, Any]) -> bool:
        return get_field(root, self.ref_path) is not None

    def get_status(self, store: StoreClient, root: dict[str, Any]) -> list[ReferenceStatus]:
        request = self._request(root)
        label = f"{self.kind.kind}/{request}"
        try:
            referent = store.get(self.kind, request)
        except NotFoundError:
            return [ReferenceStatus(label, ReferenceStatusType.NOT_FOUND)]
        if not is_condition_true(referent, "Ready"):
            return [ReferenceStatus(label, ReferenceStatusType.NOT_READY)]
        return [ReferenceStatus(label, ReferenceStatusType.READY)]

    def build(self, store: StoreClient, root: dict[str, Any]) -> Any:
        request = self._request(root)
        referent = store.get(self.kind, request)
        if self.value_path is None:
            return get_external_name(referent) or request.name
        value = get_field(referent, self.value_path)
        if value is None:
            raise ValueError(f"{self.kind.kind}/{request} has no value at {self.value_path}")
        return value

    def assign(self, root: dict[str, Any], value: Any) -> None:
        set_field(root, self.target_path, value)


class APIReferenceResolver:
    """Resolves the registered references of a managed resource and persists the result.

    Args:
        store: Client used to read referents and update the managed resource
        kind: Kind of the managed resource
        referencers: Referencers that apply to this kind

    Raises:
        ReferencerDefinitionError: If a registered entry is not a Referencer
    """

    def __init__(
        self,
        store: StoreClient,
        kind: Kind,
        referencers: Iterable[Referencer] = (),
    ) -> None:
        self.store = store
        self.kind = kind
        self.referencers = list(referencers)
        for referencer in self.referencers:
            if not isinstance(referencer, Referencer):
                raise ReferencerDefinitionError(
                    f"{type(referencer).__name__} registered for {self.kind} is not a Referencer"
                )

    def resolve_references(self, root: dict[str, Any]) -> None:
        """Resolve every set reference on ``root``.

        Raises:
            ReferencesAccessError: If any referenced object is missing or not ready
            ReferenceResolutionError: For any other failure, including
                unexpected exceptions raised by a referencer
        """
        active = [r for r in self.referencers if r.is_set(root)]
        if not active:
            return

        before = copy.deepcopy(root.get("spec"))
        try:
            statuses: list[ReferenceStatus] = []
            for referencer in active:
                statuses.extend(referencer.get_status(self.store, root))
            if not all(status.is_ready for status in statuses):
                raise ReferencesAccessError(statuses)

            for referencer in active:
                value = referencer.build(self.store, root)
                referencer.assign(root, value)
        except ReferenceResolutionError:
            raise
        except Exception as e:
            raise ReferenceResolutionError(f"cannot resolve references: {e}") from e

        if root.get("spec") == before:
            return
        try:
            self.store.update(self.kind, root)
        except StoreError as e:
            raise ReferenceResolutionError(f"cannot update resolved references: {e}") from e


class NopReferenceResolver:
    """A resolver for kinds without references."""

    def resolve_references(self, root: dict[str, Any]) -> None:
        return None
