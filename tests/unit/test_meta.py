"""Tests for metadata, field path and connection secret helpers."""

from __future__ import annotations

import pytest

from managed_operator.constants import ANNOTATION_EXTERNAL_NAME, SECRET_TYPE_CONNECTION
from managed_operator.utils import meta
from managed_operator.utils.fieldpath import get_field, set_field, split_path
from managed_operator.utils.secrets import connection_secret_for, decode_details, encode_details


def _obj(**metadata) -> dict:
    return {"apiVersion": "storage.managed.cloud37.dev/v1alpha1", "kind": "Bucket", "metadata": metadata}


class TestFinalizers:
    """Test finalizer helpers."""

    def test_add_finalizer_once(self):
        """Test that a finalizer is added once."""
        obj = _obj(name="logs")
        assert meta.add_finalizer(obj, "f") is True
        assert meta.add_finalizer(obj, "f") is False
        assert obj["metadata"]["finalizers"] == ["f"]

    def test_remove_finalizer(self):
        """Test that removing keeps other finalizers."""
        obj = _obj(name="logs", finalizers=["f", "other"])
        assert meta.remove_finalizer(obj, "f") is True
        assert meta.remove_finalizer(obj, "f") is False
        assert obj["metadata"]["finalizers"] == ["other"]


class TestReferences:
    """Test object and controller references."""

    def test_reference_to(self):
        """Test building a reference to a namespaced object."""
        obj = _obj(name="data", namespace="team-a", uid="u1")
        ref = meta.reference_to(obj)
        assert ref == {
            "apiVersion": obj["apiVersion"],
            "kind": "Bucket",
            "name": "data",
            "namespace": "team-a",
            "uid": "u1",
        }

    def test_equal_references_ignores_uid(self):
        """Test that references compare without their UID."""
        a = meta.reference_to(_obj(name="data", namespace="team-a", uid="u1"))
        b = dict(a, uid="u2")
        assert meta.equal_references(a, b)
        assert not meta.equal_references(a, dict(a, name="other"))
        assert not meta.equal_references(a, None)

    def test_controller_of(self):
        """Test reading the controlling owner."""
        owner = meta.as_controller_owner(meta.reference_to(_obj(name="o", uid="u1")))
        obj = _obj(name="s", ownerReferences=[{"uid": "x"}, owner])
        assert meta.get_controller_of(obj)["uid"] == "u1"
        assert meta.is_controlled_by(obj, "u1")
        assert not meta.is_controlled_by(_obj(name="s"), "u1")


class TestExternalName:
    """Test the external name annotation."""

    def test_set_external_name_merges(self):
        """Test that setting the external name keeps other annotations."""
        obj = _obj(name="logs", annotations={"a": "b"})
        meta.set_external_name(obj, "logs-prod")
        assert meta.get_external_name(obj) == "logs-prod"
        assert obj["metadata"]["annotations"] == {"a": "b", ANNOTATION_EXTERNAL_NAME: "logs-prod"}


class TestFieldPath:
    """Test dotted field paths."""

    def test_get_field(self):
        """Test reading nested values."""
        obj = {"spec": {"forProvider": {"region": "eu"}}}
        assert get_field(obj, "spec.forProvider.region") == "eu"
        assert get_field(obj, "spec.missing.region", "dflt") == "dflt"
        assert get_field(obj, "spec.forProvider.region.x") is None

    def test_set_field_creates_parents(self):
        """Test writing into missing parents."""
        obj: dict = {}
        set_field(obj, "spec.forProvider.loggingBucket", "logs")
        assert obj == {"spec": {"forProvider": {"loggingBucket": "logs"}}}

    def test_set_field_through_scalar_fails(self):
        """Test that a scalar parent cannot be written through."""
        with pytest.raises(ValueError):
            set_field({"spec": "x"}, "spec.region", "eu")

    def test_empty_path_is_invalid(self):
        """Test that an empty path is rejected."""
        with pytest.raises(ValueError):
            split_path(".")


class TestConnectionSecrets:
    """Test connection secret helpers."""

    def test_encode_decode(self):
        """Test that details survive encoding into secret data."""
        encoded = encode_details({"bucket": b"logs", "region": "eu"})
        assert encoded == {"bucket": "bG9ncw==", "region": "ZXU="}
        assert decode_details(encoded) == {"bucket": b"logs", "region": b"eu"}

    def test_connection_secret_for(self):
        """Test that the secret is controlled by its owner."""
        owner = _obj(name="logs", uid="u1")
        secret = connection_secret_for(owner, "storage", "logs-conn")
        assert secret["type"] == SECRET_TYPE_CONNECTION
        assert secret["metadata"]["namespace"] == "storage"
        assert meta.is_controlled_by(secret, "u1")
