"""Publishing of managed resource connection details to Kubernetes secrets."""

from __future__ import annotations

from typing import Any, Protocol

from ..errors import NotFoundError, PublishError
from ..resource import get_write_connection_secret_to_reference
from ..services.store.base import StoreClient
from ..utils.meta import get_controller_of, get_uid
from ..utils.secrets import ConnectionDetails, connection_secret_for, encode_details


class ConnectionPublisher(Protocol):
    """Writes connection details somewhere consumers can read them."""

    def publish_connection(self, managed: dict[str, Any], details: ConnectionDetails) -> None:
        ...

    def unpublish_connection(self, managed: dict[str, Any], details: ConnectionDetails) -> None:
        ...


class APISecretPublisher:
    """Publishes connection details to the managed resource's connection secret.

    Publishing is additive: keys already in the secret are kept unless the
    new details carry the same key.
    """

    def __init__(self, store: StoreClient) -> None:
        self.store = store

    def publish_connection(self, managed: dict[str, Any], details: ConnectionDetails) -> None:
        """Create or update the connection secret.

        Raises:
            PublishError: If the secret exists but belongs to another object
            StoreError: If the secret cannot be read or written
        """
        ref = get_write_connection_secret_to_reference(managed)
        if ref is None:
            return

        try:
            existing = self.store.get_secret(ref["namespace"], ref["name"])
        except NotFoundError:
            secret = connection_secret_for(managed, ref["namespace"], ref["name"])
            secret["data"] = encode_details(details)
            self.store.create_secret(secret)
            return

        owner = get_controller_of(existing)
        if owner is not None and owner.get("uid") != get_uid(managed):
            raise PublishError(
                f"secret {ref['namespace']}/{ref['name']} is controlled by another object"
            )
        if not details:
            return

        data = existing.get("data") or {}
        data.update(encode_details(details))
        existing["data"] = data
        self.store.update_secret(existing)

    def unpublish_connection(self, managed: dict[str, Any], details: ConnectionDetails) -> None:
        """Nothing to do: the secret is garbage collected with its owner."""


class PublisherChain:
    """Runs several publishers in order, stopping at the first error."""

    def __init__(self, *publishers: ConnectionPublisher) -> None:
        self.publishers = list(publishers)

    def publish_connection(self, managed: dict[str, Any], details: ConnectionDetails) -> None:
        for publisher in self.publishers:
            publisher.publish_connection(managed, details)

    def unpublish_connection(self, managed: dict[str, Any], details: ConnectionDetails) -> None:
        for publisher in self.publishers:
            publisher.unpublish_connection(managed, details)
