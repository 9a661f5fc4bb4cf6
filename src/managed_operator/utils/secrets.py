"""Utilities for building connection secrets."""

from __future__ import annotations

import base64
from typing import Any

from ..constants import SECRET_TYPE_CONNECTION
from .meta import as_controller_owner, reference_to

ConnectionDetails = dict[str, bytes]


def encode_details(details: ConnectionDetails) -> dict[str, str]:
    """Encode connection details for the ``data`` field of a Secret.

    Args:
        details: Connection details as raw bytes (str values are UTF-8 encoded)

    Returns:
        Base64 encoded secret data
    """
    encoded = {}
    for key, value in details.items():
        if isinstance(value, str):
            value = value.encode("utf-8")
        encoded[key] = base64.b64encode(value).decode("ascii")
    return encoded


def decode_details(data: dict[str, str] | None) -> ConnectionDetails:
    """Decode the ``data`` field of a Secret into connection details."""
    return {key: base64.b64decode(value) for key, value in (data or {}).items()}


def connection_secret_for(owner: dict[str, Any], namespace: str, name: str) -> dict[str, Any]:
    """Build an empty connection secret controlled by ``owner``.

    Args:
        owner: Managed resource or claim the secret belongs to
        namespace: Namespace of the secret
        name: Name of the secret

    Returns:
        Secret body ready to be created
    """
    return {
        "apiVersion": "v1",
        "kind": "Secret",
        "metadata": {
            "name": name,
            "namespace": namespace,
            "ownerReferences": [as_controller_owner(reference_to(owner))],
        },
        "type": SECRET_TYPE_CONNECTION,
        "data": {},
    }
