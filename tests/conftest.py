"""Shared fixtures: an in-memory store and object builders."""

from __future__ import annotations

import copy
import itertools
import uuid
from typing import Any, Callable

import pytest

from managed_operator.buckets import BUCKET, BUCKET_CLAIM, BUCKET_CLASS
from managed_operator.errors import ConflictError, NotFoundError
from managed_operator.resource import Kind, Request
from managed_operator.services.store.base import refresh


class FakeStore:
    """In-memory StoreClient with the optimistic concurrency of the API server.

    Set ``errors[operation]`` to an exception to make that operation fail.
    """

    def __init__(self) -> None:
        self.objects: dict[tuple[str, str, str], dict[str, Any]] = {}
        self.secrets: dict[tuple[str, str], dict[str, Any]] = {}
        self.errors: dict[str, Exception] = {}
        self.calls: list[tuple[str, str]] = []
        self._rv = itertools.count(1)
        self._names = itertools.count(1)

    def _record(self, operation: str, name: str) -> None:
        self.calls.append((operation, name))
        error = self.errors.get(operation)
        if error is not None:
            raise error

    def _key(self, kind: Kind, namespace: str, name: str) -> tuple[str, str, str]:
        return (str(kind), namespace if kind.namespaced else "", name)

    def _check_version(self, stored: dict[str, Any], obj: dict[str, Any]) -> None:
        rv = (obj.get("metadata") or {}).get("resourceVersion")
        if rv and rv != stored["metadata"]["resourceVersion"]:
            raise ConflictError("the object has been modified")

    def _stamp(self, obj: dict[str, Any]) -> None:
        meta = obj.setdefault("metadata", {})
        meta.setdefault("uid", uuid.uuid4().hex)
        meta.setdefault("creationTimestamp", "2024-01-01T00:00:00Z")
        meta["resourceVersion"] = str(next(self._rv))

    def ops(self, operation: str) -> list[str]:
        """Names of the objects ``operation`` was called with."""
        return [name for op, name in self.calls if op == operation]

    # Helpers for arranging tests

    def put(self, kind: Kind, obj: dict[str, Any]) -> dict[str, Any]:
        obj.setdefault("apiVersion", kind.api_version)
        obj.setdefault("kind", kind.kind)
        self._stamp(obj)
        meta = obj["metadata"]
        self.objects[self._key(kind, meta.get("namespace", ""), meta["name"])] = copy.deepcopy(obj)
        return obj

    def put_secret(self, secret: dict[str, Any]) -> dict[str, Any]:
        self._stamp(secret)
        meta = secret["metadata"]
        self.secrets[(meta["namespace"], meta["name"])] = copy.deepcopy(secret)
        return secret

    def peek(self, kind: Kind, namespace: str, name: str) -> dict[str, Any] | None:
        return self.objects.get(self._key(kind, namespace, name))

    def all(self, kind: Kind) -> list[dict[str, Any]]:
        return [obj for key, obj in self.objects.items() if key[0] == str(kind)]

    # StoreClient

    def get(self, kind: Kind, request: Request) -> dict[str, Any]:
        self._record("get", request.name)
        stored = self.objects.get(self._key(kind, request.namespace, request.name))
        if stored is None:
            raise NotFoundError(f"{kind} {request} not found")
        return copy.deepcopy(stored)

    def list(
        self,
        kind: Kind,
        namespace: str | None = None,
        label_selector: dict[str, str] | None = None,
    ) -> list[dict[str, Any]]:
        self._record("list", kind.plural)
        items = []
        for (kind_key, ns, _), obj in sorted(self.objects.items()):
            if kind_key != str(kind) or (namespace and ns != namespace):
                continue
            labels = obj["metadata"].get("labels") or {}
            if any(labels.get(k) != v for k, v in (label_selector or {}).items()):
                continue
            items.append(copy.deepcopy(obj))
        return items

    def create(self, kind: Kind, obj: dict[str, Any]) -> None:
        meta = obj.setdefault("metadata", {})
        if not meta.get("name") and meta.get("generateName"):
            meta["name"] = f"{meta['generateName']}{next(self._names):05d}"
        self._record("create", meta.get("name", ""))
        key = self._key(kind, meta.get("namespace", ""), meta["name"])
        if key in self.objects:
            raise ConflictError(f"{kind} {meta['name']} already exists")
        stored = copy.deepcopy(obj)
        stored.setdefault("apiVersion", kind.api_version)
        stored.setdefault("kind", kind.kind)
        stored.pop("status", None)
        stored["metadata"].pop("uid", None)
        self._stamp(stored)
        self.objects[key] = stored
        refresh(obj, copy.deepcopy(stored), keep_status=True)

    def update(self, kind: Kind, obj: dict[str, Any]) -> None:
        meta = obj["metadata"]
        self._record("update", meta["name"])
        key = self._key(kind, meta.get("namespace", ""), meta["name"])
        stored = self.objects.get(key)
        if stored is None:
            raise NotFoundError(f"{kind} {meta['name']} not found")
        self._check_version(stored, obj)

        replacement = copy.deepcopy(obj)
        replacement.pop("status", None)
        if "status" in stored:
            replacement["status"] = stored["status"]
        replacement["metadata"]["uid"] = stored["metadata"]["uid"]
        self._stamp(replacement)
        if replacement["metadata"].get("deletionTimestamp") and not replacement["metadata"].get(
            "finalizers"
        ):
            del self.objects[key]
        else:
            self.objects[key] = replacement
        refresh(obj, copy.deepcopy(replacement), keep_status=True)

    def update_status(self, kind: Kind, obj: dict[str, Any]) -> None:
        meta = obj["metadata"]
        self._record("update_status", meta["name"])
        key = self._key(kind, meta.get("namespace", ""), meta["name"])
        stored = self.objects.get(key)
        if stored is None:
            raise NotFoundError(f"{kind} {meta['name']} not found")
        self._check_version(stored, obj)
        stored["status"] = copy.deepcopy(obj.get("status") or {})
        self._stamp(stored)
        refresh(obj, copy.deepcopy(stored))

    def delete(self, kind: Kind, obj: dict[str, Any]) -> None:
        meta = obj["metadata"]
        self._record("delete", meta["name"])
        key = self._key(kind, meta.get("namespace", ""), meta["name"])
        stored = self.objects.get(key)
        if stored is None:
            raise NotFoundError(f"{kind} {meta['name']} not found")
        if stored["metadata"].get("finalizers"):
            stored["metadata"]["deletionTimestamp"] = "2024-01-02T00:00:00Z"
            self._stamp(stored)
        else:
            del self.objects[key]

    def get_secret(self, namespace: str, name: str) -> dict[str, Any]:
        self._record("get_secret", name)
        stored = self.secrets.get((namespace, name))
        if stored is None:
            raise NotFoundError(f"secret {namespace}/{name} not found")
        return copy.deepcopy(stored)

    def create_secret(self, secret: dict[str, Any]) -> None:
        meta = secret["metadata"]
        self._record("create_secret", meta["name"])
        key = (meta["namespace"], meta["name"])
        if key in self.secrets:
            raise ConflictError(f"secret {meta['name']} already exists")
        stored = copy.deepcopy(secret)
        self._stamp(stored)
        self.secrets[key] = stored
        refresh(secret, copy.deepcopy(stored))

    def update_secret(self, secret: dict[str, Any]) -> None:
        meta = secret["metadata"]
        self._record("update_secret", meta["name"])
        key = (meta["namespace"], meta["name"])
        stored = self.secrets.get(key)
        if stored is None:
            raise NotFoundError(f"secret {meta['name']} not found")
        self._check_version(stored, secret)
        replacement = copy.deepcopy(secret)
        replacement["metadata"]["uid"] = stored["metadata"]["uid"]
        self._stamp(replacement)
        self.secrets[key] = replacement
        refresh(secret, copy.deepcopy(replacement))


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def make_bucket(store: FakeStore) -> Callable[..., dict[str, Any]]:
    """Store a Bucket managed resource and return it."""

    def _make(name: str = "logs", persist: bool = True, **spec: Any) -> dict[str, Any]:
        obj = {
            "apiVersion": BUCKET.api_version,
            "kind": BUCKET.kind,
            "metadata": {"name": name},
            "spec": {"forProvider": {}, **spec},
        }
        return store.put(BUCKET, obj) if persist else obj

    return _make


@pytest.fixture
def make_claim(store: FakeStore) -> Callable[..., dict[str, Any]]:
    """Store a BucketClaim and return it."""

    def _make(name: str = "my-bucket", namespace: str = "team-a", **spec: Any) -> dict[str, Any]:
        obj = {
            "apiVersion": BUCKET_CLAIM.api_version,
            "kind": BUCKET_CLAIM.kind,
            "metadata": {"name": name, "namespace": namespace},
            "spec": dict(spec),
        }
        return store.put(BUCKET_CLAIM, obj)

    return _make


@pytest.fixture
def make_class(store: FakeStore) -> Callable[..., dict[str, Any]]:
    """Store a BucketClass and return it."""

    def _make(
        name: str = "standard",
        labels: dict[str, str] | None = None,
        annotations: dict[str, str] | None = None,
        **template: Any,
    ) -> dict[str, Any]:
        obj = {
            "apiVersion": BUCKET_CLASS.api_version,
            "kind": BUCKET_CLASS.kind,
            "metadata": {
                "name": name,
                "labels": labels or {},
                "annotations": annotations or {},
            },
            "specTemplate": dict(template),
        }
        return store.put(BUCKET_CLASS, obj)

    return _make
