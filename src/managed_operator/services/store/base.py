"""Base store interface used by the reconcilers."""

from __future__ import annotations

from typing import Any, Protocol

from ...resource import Kind, Request


class StoreClient(Protocol):
    """Protocol defining the Kubernetes API operations the reconcilers need.

    Write operations refresh the passed object in place with the server's
    response, so a following write carries the new resourceVersion. Errors
    are reported as NotFoundError, ConflictError or StoreError.
    """

    def get(self, kind: Kind, request: Request) -> dict[str, Any]:
        """Get an object by namespace and name."""
        ...

    def list(
        self,
        kind: Kind,
        namespace: str | None = None,
        label_selector: dict[str, str] | None = None,
    ) -> list[dict[str, Any]]:
        """List objects of a kind, optionally filtered by labels."""
        ...

    def create(self, kind: Kind, obj: dict[str, Any]) -> None:
        """Create an object, honouring metadata.generateName."""
        ...

    def update(self, kind: Kind, obj: dict[str, Any]) -> None:
        """Replace an object's metadata and spec.

        The in-memory status is kept so it can be written afterwards with
        update_status.
        """
        ...

    def update_status(self, kind: Kind, obj: dict[str, Any]) -> None:
        """Replace an object's status subresource."""
        ...

    def delete(self, kind: Kind, obj: dict[str, Any]) -> None:
        """Delete an object."""
        ...

    def get_secret(self, namespace: str, name: str) -> dict[str, Any]:
        """Get a Secret."""
        ...

    def create_secret(self, secret: dict[str, Any]) -> None:
        """Create a Secret."""
        ...

    def update_secret(self, secret: dict[str, Any]) -> None:
        """Replace a Secret, failing on resourceVersion conflicts."""
        ...


def label_selector_string(labels: dict[str, str] | None) -> str | None:
    """Render matchLabels as a Kubernetes label selector string."""
    if not labels:
        return None
    return ",".join(f"{key}={value}" for key, value in sorted(labels.items()))


def refresh(obj: dict[str, Any], response: dict[str, Any], keep_status: bool = False) -> None:
    """Replace ``obj``'s content with ``response``.

    Args:
        obj: Object to refresh in place
        response: Object returned by the API server
        keep_status: Keep the in-memory status instead of the server's
    """
    status = obj.get("status")
    obj.clear()
    obj.update(response)
    if keep_status:
        if status is None:
            obj.pop("status", None)
        else:
            obj["status"] = status
