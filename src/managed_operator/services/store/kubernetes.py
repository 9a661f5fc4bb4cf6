"""Store client backed by the Kubernetes API."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable

from kubernetes import client

from ... import metrics
from ...errors import ConflictError, NotFoundError, StoreError
from ...resource import Kind, Request
from ...utils.context import check_deadline, remaining_time
from .base import label_selector_string, refresh

logger = logging.getLogger(__name__)


class KubernetesStore:
    """StoreClient implementation over CustomObjectsApi and CoreV1Api."""

    def __init__(
        self,
        custom_api: client.CustomObjectsApi | None = None,
        core_api: client.CoreV1Api | None = None,
        field_manager: str = "managed-operator",
    ) -> None:
        """Initialize the store.

        API clients are created on first use, so the store can be built
        before the Kubernetes configuration is loaded.

        Args:
            custom_api: API used for custom resources
            core_api: API used for Secrets
            field_manager: Field manager recorded on writes
        """
        self._custom_api = custom_api
        self._core_api = core_api
        self.field_manager = field_manager

    @property
    def custom_api(self) -> client.CustomObjectsApi:
        if self._custom_api is None:
            self._custom_api = client.CustomObjectsApi()
        return self._custom_api

    @property
    def core_api(self) -> client.CoreV1Api:
        if self._core_api is None:
            self._core_api = client.CoreV1Api()
        return self._core_api

    def _call(self, operation: str, fn: Callable[..., Any], **kwargs: Any) -> Any:
        """Invoke an API method with deadline handling, metrics and error mapping."""
        check_deadline()
        timeout = remaining_time()
        if timeout is not None:
            kwargs["_request_timeout"] = timeout

        start_time = time.time()
        try:
            result = fn(**kwargs)
            metrics.api_call_total.labels(operation=operation, result="success").inc()
            return result
        except client.exceptions.ApiException as e:
            metrics.api_call_total.labels(operation=operation, result="error").inc()
            if e.status == 404:
                raise NotFoundError(f"{operation}: not found") from e
            if e.status == 409:
                raise ConflictError(f"{operation}: {e.reason}") from e
            raise StoreError(f"{operation}: {e.status} {e.reason}") from e
        finally:
            duration = time.time() - start_time
            metrics.api_call_duration_seconds.labels(operation=operation).observe(duration)

    def _to_dict(self, model: Any) -> dict[str, Any]:
        return self.core_api.api_client.sanitize_for_serialization(model)

    def get(self, kind: Kind, request: Request) -> dict[str, Any]:
        if kind.namespaced:
            return self._call(
                f"get_{kind.plural}",
                self.custom_api.get_namespaced_custom_object,
                group=kind.group,
                version=kind.version,
                namespace=request.namespace,
                plural=kind.plural,
                name=request.name,
            )
        return self._call(
            f"get_{kind.plural}",
            self.custom_api.get_cluster_custom_object,
            group=kind.group,
            version=kind.version,
            plural=kind.plural,
            name=request.name,
        )

    def list(
        self,
        kind: Kind,
        namespace: str | None = None,
        label_selector: dict[str, str] | None = None,
    ) -> list[dict[str, Any]]:
        kwargs: dict[str, Any] = {
            "group": kind.group,
            "version": kind.version,
            "plural": kind.plural,
        }
        selector = label_selector_string(label_selector)
        if selector:
            kwargs["label_selector"] = selector

        if kind.namespaced and namespace:
            response = self._call(
                f"list_{kind.plural}",
                self.custom_api.list_namespaced_custom_object,
                namespace=namespace,
                **kwargs,
            )
        else:
            response = self._call(
                f"list_{kind.plural}", self.custom_api.list_cluster_custom_object, **kwargs
            )
        return list(response.get("items") or [])

    def create(self, kind: Kind, obj: dict[str, Any]) -> None:
        obj.setdefault("apiVersion", kind.api_version)
        obj.setdefault("kind", kind.kind)
        if kind.namespaced:
            response = self._call(
                f"create_{kind.plural}",
                self.custom_api.create_namespaced_custom_object,
                group=kind.group,
                version=kind.version,
                namespace=obj["metadata"]["namespace"],
                plural=kind.plural,
                body=obj,
                field_manager=self.field_manager,
            )
        else:
            response = self._call(
                f"create_{kind.plural}",
                self.custom_api.create_cluster_custom_object,
                group=kind.group,
                version=kind.version,
                plural=kind.plural,
                body=obj,
                field_manager=self.field_manager,
            )
        refresh(obj, response, keep_status=True)

    def update(self, kind: Kind, obj: dict[str, Any]) -> None:
        meta = obj["metadata"]
        if kind.namespaced:
            response = self._call(
                f"update_{kind.plural}",
                self.custom_api.replace_namespaced_custom_object,
                group=kind.group,
                version=kind.version,
                namespace=meta["namespace"],
                plural=kind.plural,
                name=meta["name"],
                body=obj,
                field_manager=self.field_manager,
            )
        else:
            response = self._call(
                f"update_{kind.plural}",
                self.custom_api.replace_cluster_custom_object,
                group=kind.group,
                version=kind.version,
                plural=kind.plural,
                name=meta["name"],
                body=obj,
                field_manager=self.field_manager,
            )
        refresh(obj, response, keep_status=True)

    def update_status(self, kind: Kind, obj: dict[str, Any]) -> None:
        meta = obj["metadata"]
        if kind.namespaced:
            response = self._call(
                f"update_{kind.plural}_status",
                self.custom_api.replace_namespaced_custom_object_status,
                group=kind.group,
                version=kind.version,
                namespace=meta["namespace"],
                plural=kind.plural,
                name=meta["name"],
                body=obj,
                field_manager=self.field_manager,
            )
        else:
            response = self._call(
                f"update_{kind.plural}_status",
                self.custom_api.replace_cluster_custom_object_status,
                group=kind.group,
                version=kind.version,
                plural=kind.plural,
                name=meta["name"],
                body=obj,
                field_manager=self.field_manager,
            )
        refresh(obj, response)

    def delete(self, kind: Kind, obj: dict[str, Any]) -> None:
        meta = obj["metadata"]
        if kind.namespaced:
            self._call(
                f"delete_{kind.plural}",
                self.custom_api.delete_namespaced_custom_object,
                group=kind.group,
                version=kind.version,
                namespace=meta["namespace"],
                plural=kind.plural,
                name=meta["name"],
            )
        else:
            self._call(
                f"delete_{kind.plural}",
                self.custom_api.delete_cluster_custom_object,
                group=kind.group,
                version=kind.version,
                plural=kind.plural,
                name=meta["name"],
            )

    def get_secret(self, namespace: str, name: str) -> dict[str, Any]:
        secret = self._call(
            "get_secret",
            self.core_api.read_namespaced_secret,
            name=name,
            namespace=namespace,
        )
        return self._to_dict(secret)

    def create_secret(self, secret: dict[str, Any]) -> None:
        response = self._call(
            "create_secret",
            self.core_api.create_namespaced_secret,
            namespace=secret["metadata"]["namespace"],
            body=secret,
            field_manager=self.field_manager,
        )
        refresh(secret, self._to_dict(response))

    def update_secret(self, secret: dict[str, Any]) -> None:
        meta = secret["metadata"]
        response = self._call(
            "update_secret",
            self.core_api.replace_namespaced_secret,
            name=meta["name"],
            namespace=meta["namespace"],
            body=secret,
            field_manager=self.field_manager,
        )
        refresh(secret, self._to_dict(response))
