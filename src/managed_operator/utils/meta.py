"""Helpers for reading and writing object metadata."""

from __future__ import annotations

from typing import Any

from ..constants import ANNOTATION_EXTERNAL_NAME


def metadata(obj: dict[str, Any]) -> dict[str, Any]:
    """Return the object's metadata, creating it if absent."""
    return obj.setdefault("metadata", {})


def get_name(obj: dict[str, Any]) -> str:
    return (obj.get("metadata") or {}).get("name", "")


def get_namespace(obj: dict[str, Any]) -> str:
    return (obj.get("metadata") or {}).get("namespace", "")


def get_uid(obj: dict[str, Any]) -> str:
    return (obj.get("metadata") or {}).get("uid", "")


def get_annotations(obj: dict[str, Any]) -> dict[str, str]:
    return (obj.get("metadata") or {}).get("annotations") or {}


def set_annotations(obj: dict[str, Any], annotations: dict[str, str]) -> None:
    """Merge ``annotations`` into the object's annotations."""
    meta = metadata(obj)
    current = meta.get("annotations") or {}
    current.update(annotations)
    meta["annotations"] = current


def was_deleted(obj: dict[str, Any]) -> bool:
    """Check whether the object is marked for deletion."""
    return bool((obj.get("metadata") or {}).get("deletionTimestamp"))


def has_finalizer(obj: dict[str, Any], finalizer: str) -> bool:
    return finalizer in ((obj.get("metadata") or {}).get("finalizers") or [])


def add_finalizer(obj: dict[str, Any], finalizer: str) -> bool:
    """Add a finalizer to the object.

    Returns:
        True if the finalizer list changed
    """
    meta = metadata(obj)
    finalizers = list(meta.get("finalizers") or [])
    if finalizer in finalizers:
        return False
    finalizers.append(finalizer)
    meta["finalizers"] = finalizers
    return True


def remove_finalizer(obj: dict[str, Any], finalizer: str) -> bool:
    """Remove a finalizer from the object.

    Returns:
        True if the finalizer list changed
    """
    meta = metadata(obj)
    finalizers = list(meta.get("finalizers") or [])
    if finalizer not in finalizers:
        return False
    meta["finalizers"] = [f for f in finalizers if f != finalizer]
    return True


def get_external_name(obj: dict[str, Any]) -> str:
    return get_annotations(obj).get(ANNOTATION_EXTERNAL_NAME, "")


def set_external_name(obj: dict[str, Any], name: str) -> None:
    set_annotations(obj, {ANNOTATION_EXTERNAL_NAME: name})


def reference_to(obj: dict[str, Any]) -> dict[str, Any]:
    """Build an object reference pointing at ``obj``."""
    meta = obj.get("metadata") or {}
    ref = {
        "apiVersion": obj.get("apiVersion", ""),
        "kind": obj.get("kind", ""),
        "name": meta.get("name", ""),
        "uid": meta.get("uid", ""),
    }
    if meta.get("namespace"):
        ref["namespace"] = meta["namespace"]
    return ref


def equal_references(a: dict[str, Any] | None, b: dict[str, Any] | None) -> bool:
    """Compare two object references, ignoring UID.

    UIDs change when objects are restored from backup, so identity is the
    tuple of apiVersion, kind, namespace and name.
    """
    if not a or not b:
        return False
    keys = ("apiVersion", "kind", "namespace", "name")
    return all((a.get(k) or "") == (b.get(k) or "") for k in keys)


def as_controller_owner(ref: dict[str, Any]) -> dict[str, Any]:
    """Turn an object reference into a controller owner reference."""
    return {
        "apiVersion": ref["apiVersion"],
        "kind": ref["kind"],
        "name": ref["name"],
        "uid": ref["uid"],
        "controller": True,
        "blockOwnerDeletion": True,
    }


def get_controller_of(obj: dict[str, Any]) -> dict[str, Any] | None:
    """Return the owner reference marked as controller, if any."""
    for owner in (obj.get("metadata") or {}).get("ownerReferences") or []:
        if owner.get("controller"):
            return owner
    return None


def is_controlled_by(obj: dict[str, Any], uid: str) -> bool:
    owner = get_controller_of(obj)
    return owner is not None and owner.get("uid") == uid
