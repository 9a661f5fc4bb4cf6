"""Resource kinds, reconcile requests and accessors for managed resources and claims.

Managed resources, claims and classes are handled as plain Kubernetes object
dictionaries, the shape that kopf and the kubernetes client hand out. The
functions below read and write the fields the reconcilers care about.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from .utils.meta import get_namespace


class BindingPhase(str, Enum):
    """Lifecycle state of a bindable object."""

    UNSET = ""
    UNBINDABLE = "Unbindable"
    UNBOUND = "Unbound"
    BOUND = "Bound"
    RELEASED = "Released"


class ReclaimPolicy(str, Enum):
    """What happens to the external resource when its managed resource is released."""

    DELETE = "Delete"
    RETAIN = "Retain"


@dataclass(frozen=True)
class Kind:
    """Identifies a custom resource kind served by the Kubernetes API."""

    group: str
    version: str
    kind: str
    plural: str
    namespaced: bool = True

    @property
    def api_version(self) -> str:
        return f"{self.group}/{self.version}" if self.group else self.version

    def new(self, name: str = "", namespace: str = "") -> dict[str, Any]:
        """Return an empty object of this kind."""
        meta: dict[str, Any] = {}
        if name:
            meta["name"] = name
        if namespace and self.namespaced:
            meta["namespace"] = namespace
        return {"apiVersion": self.api_version, "kind": self.kind, "metadata": meta}

    def __str__(self) -> str:
        return f"{self.kind}.{self.group}"


@dataclass(frozen=True)
class Request:
    """Identifies the object a reconcile should act on."""

    namespace: str
    name: str

    @classmethod
    def from_object(cls, obj: dict[str, Any]) -> "Request":
        meta = obj.get("metadata") or {}
        return cls(namespace=meta.get("namespace") or "", name=meta.get("name", ""))

    @classmethod
    def from_reference(cls, ref: dict[str, Any]) -> "Request":
        return cls(namespace=ref.get("namespace") or "", name=ref.get("name", ""))

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}" if self.namespace else self.name


@dataclass
class Result:
    """Outcome of a reconcile: when, if ever, to look at the object again."""

    requeue_after: float | None = None

    @property
    def requeue(self) -> bool:
        return self.requeue_after is not None


def _spec(obj: dict[str, Any]) -> dict[str, Any]:
    return obj.setdefault("spec", {})


def _status(obj: dict[str, Any]) -> dict[str, Any]:
    return obj.setdefault("status", {})


def was_created(obj: dict[str, Any]) -> bool:
    """Check whether the object has been persisted to the API server."""
    return bool((obj.get("metadata") or {}).get("creationTimestamp"))


# Binding phase


def get_binding_phase(obj: dict[str, Any]) -> BindingPhase:
    raw = (obj.get("status") or {}).get("bindingPhase") or ""
    try:
        return BindingPhase(raw)
    except ValueError:
        return BindingPhase.UNSET


def set_binding_phase(obj: dict[str, Any], phase: BindingPhase) -> None:
    _status(obj)["bindingPhase"] = phase.value


def set_bindable(obj: dict[str, Any]) -> None:
    """Mark the object Unbound, unless it is already Bound or Released.

    External clients call this once the external resource is usable. Binding
    state set by the claim reconciler is never reset.
    """
    if get_binding_phase(obj) in (BindingPhase.BOUND, BindingPhase.RELEASED):
        return
    set_binding_phase(obj, BindingPhase.UNBOUND)


def is_bindable(obj: dict[str, Any]) -> bool:
    return get_binding_phase(obj) == BindingPhase.UNBOUND


def is_bound(obj: dict[str, Any]) -> bool:
    return get_binding_phase(obj) == BindingPhase.BOUND


# Managed resource spec fields


def get_reclaim_policy(obj: dict[str, Any]) -> str:
    return (obj.get("spec") or {}).get("reclaimPolicy") or ""


def set_reclaim_policy(obj: dict[str, Any], policy: ReclaimPolicy | str) -> None:
    _spec(obj)["reclaimPolicy"] = ReclaimPolicy(policy).value


def get_claim_reference(obj: dict[str, Any]) -> dict[str, Any] | None:
    return (obj.get("spec") or {}).get("claimRef")


def set_claim_reference(obj: dict[str, Any], ref: dict[str, Any] | None) -> None:
    if ref is None:
        _spec(obj).pop("claimRef", None)
    else:
        _spec(obj)["claimRef"] = ref


def get_class_reference(obj: dict[str, Any]) -> dict[str, Any] | None:
    return (obj.get("spec") or {}).get("classRef")


def set_class_reference(obj: dict[str, Any], ref: dict[str, Any] | None) -> None:
    if ref is None:
        _spec(obj).pop("classRef", None)
    else:
        _spec(obj)["classRef"] = ref


def get_resource_reference(obj: dict[str, Any]) -> dict[str, Any] | None:
    return (obj.get("spec") or {}).get("resourceRef")


def set_resource_reference(obj: dict[str, Any], ref: dict[str, Any] | None) -> None:
    if ref is None:
        _spec(obj).pop("resourceRef", None)
    else:
        _spec(obj)["resourceRef"] = ref


def get_class_selector(obj: dict[str, Any]) -> dict[str, Any] | None:
    return (obj.get("spec") or {}).get("classSelector")


def get_write_connection_secret_to_reference(obj: dict[str, Any]) -> dict[str, str] | None:
    """Return the ``{namespace, name}`` of a managed resource's connection secret.

    A reference without a namespace resolves to the object's own namespace.
    """
    ref = (obj.get("spec") or {}).get("writeConnectionSecretToRef")
    if not ref or not ref.get("name"):
        return None
    namespace = ref.get("namespace") or get_namespace(obj)
    return {"namespace": namespace, "name": ref["name"]}


def get_claim_connection_secret_reference(claim: dict[str, Any]) -> dict[str, str] | None:
    """Return the ``{namespace, name}`` of a claim's connection secret.

    Claims may only write secrets into their own namespace, so any namespace
    given in the claim's reference is ignored.
    """
    ref = (claim.get("spec") or {}).get("writeConnectionSecretToRef")
    if not ref or not ref.get("name"):
        return None
    return {"namespace": get_namespace(claim), "name": ref["name"]}


def set_write_connection_secret_to_reference(
    obj: dict[str, Any], ref: dict[str, str] | None
) -> None:
    if ref is None:
        _spec(obj).pop("writeConnectionSecretToRef", None)
    else:
        _spec(obj)["writeConnectionSecretToRef"] = dict(ref)


def get_spec_template(cls: dict[str, Any]) -> dict[str, Any]:
    """Return the provisioning template of a resource class."""
    return cls.get("specTemplate") or {}
