"""Tests for connection secret propagation."""

from __future__ import annotations

import pytest

from managed_operator.constants import (
    ANNOTATION_PROPAGATE_FROM_PREFIX,
    ANNOTATION_PROPAGATE_TO_PREFIX,
)
from managed_operator.errors import PropagationError
from managed_operator.reconcilers.propagator import (
    APIManagedConnectionPropagator,
    SecretPropagatingReconciler,
    parse_propagated_from,
    propagation_targets,
)
from managed_operator.resource import Request
from managed_operator.utils import meta


@pytest.fixture
def bucket(make_bucket):
    return make_bucket(writeConnectionSecretToRef={"namespace": "storage", "name": "logs-conn"})


@pytest.fixture
def claim(make_claim):
    return make_claim(writeConnectionSecretToRef={"name": "data-conn"})


@pytest.fixture
def source(store, bucket):
    owner = meta.as_controller_owner(meta.reference_to(bucket))
    return store.put_secret(
        {
            "apiVersion": "v1",
            "kind": "Secret",
            "metadata": {"name": "logs-conn", "namespace": "storage", "ownerReferences": [owner]},
            "data": {"bucket": "bG9ncw=="},
        }
    )


class TestAPIManagedConnectionPropagator:
    """Test APIManagedConnectionPropagator."""

    def test_copies_and_links_secrets(self, store, bucket, claim, source):
        """Test that the copy is created and both secrets are annotated."""
        APIManagedConnectionPropagator(store).propagate_connection(claim, bucket)

        copy = store.secrets[("team-a", "data-conn")]
        assert copy["data"] == {"bucket": "bG9ncw=="}
        assert meta.is_controlled_by(copy, meta.get_uid(claim))
        assert meta.get_annotations(copy) == {
            ANNOTATION_PROPAGATE_FROM_PREFIX + meta.get_uid(source): "storage/logs-conn"
        }

        updated_source = store.secrets[("storage", "logs-conn")]
        assert meta.get_annotations(updated_source) == {
            ANNOTATION_PROPAGATE_TO_PREFIX + meta.get_uid(copy): "team-a/data-conn"
        }

    def test_refuses_source_not_controlled_by_managed(self, store, bucket, claim):
        """Test that only the managed resource's own secret is propagated."""
        store.put_secret(
            {
                "metadata": {
                    "name": "logs-conn",
                    "namespace": "storage",
                    "ownerReferences": [{"uid": "other", "controller": True}],
                },
                "data": {"bucket": "bG9ncw=="},
            }
        )

        with pytest.raises(PropagationError):
            APIManagedConnectionPropagator(store).propagate_connection(claim, bucket)

        assert ("team-a", "data-conn") not in store.secrets

    def test_refuses_destination_of_another_owner(self, store, bucket, claim, source):
        """Test that an unrelated secret in the claim's namespace is not overwritten."""
        store.put_secret(
            {
                "metadata": {
                    "name": "data-conn",
                    "namespace": "team-a",
                    "ownerReferences": [{"uid": "other", "controller": True}],
                },
                "data": {"keep": "eA=="},
            }
        )

        with pytest.raises(PropagationError):
            APIManagedConnectionPropagator(store).propagate_connection(claim, bucket)

        assert store.secrets[("team-a", "data-conn")]["data"] == {"keep": "eA=="}

    def test_copy_stays_in_claim_namespace(self, store, bucket, source, make_claim):
        """Test that a claim naming another namespace still gets its copy locally."""
        claim = make_claim(
            writeConnectionSecretToRef={"name": "stolen", "namespace": "kube-system"}
        )

        APIManagedConnectionPropagator(store).propagate_connection(claim, bucket)

        assert ("kube-system", "stolen") not in store.secrets
        assert store.secrets[("team-a", "stolen")]["data"] == {"bucket": "bG9ncw=="}
        assert meta.get_annotations(store.secrets[("storage", "logs-conn")]) == {
            ANNOTATION_PROPAGATE_TO_PREFIX
            + meta.get_uid(store.secrets[("team-a", "stolen")]): "team-a/stolen"
        }

    def test_missing_source(self, store, bucket, claim):
        """Test that a missing source secret is an error."""
        with pytest.raises(PropagationError):
            APIManagedConnectionPropagator(store).propagate_connection(claim, bucket)

    def test_nothing_to_do_without_references(self, store, make_bucket, make_claim):
        """Test that objects without secret references are left alone."""
        APIManagedConnectionPropagator(store).propagate_connection(make_claim(), make_bucket())
        assert store.calls == []


class TestAnnotationParsing:
    """Test the propagation annotation parsers."""

    def test_parse_propagated_from(self):
        """Test reading the source of a copy."""
        secret = {"metadata": {"annotations": {ANNOTATION_PROPAGATE_FROM_PREFIX + "u1": "ns/name"}}}
        assert parse_propagated_from(secret) == ("u1", "ns", "name")
        assert parse_propagated_from({"metadata": {}}) is None

    def test_parse_malformed(self):
        """Test that a malformed annotation value is an error."""
        secret = {"metadata": {"annotations": {ANNOTATION_PROPAGATE_FROM_PREFIX + "u1": "name"}}}
        with pytest.raises(PropagationError):
            parse_propagated_from(secret)

    def test_propagation_targets(self):
        """Test listing the copies of a source."""
        secret = {
            "metadata": {
                "annotations": {
                    ANNOTATION_PROPAGATE_TO_PREFIX + "u1": "team-a/data-conn",
                    ANNOTATION_PROPAGATE_TO_PREFIX + "u2": "broken",
                    "unrelated": "x/y",
                }
            }
        }
        assert propagation_targets(secret) == [Request("team-a", "data-conn")]


class TestSecretPropagatingReconciler:
    """Test SecretPropagatingReconciler."""

    @pytest.fixture
    def linked(self, store, bucket, claim, source):
        APIManagedConnectionPropagator(store).propagate_connection(claim, bucket)
        return store.secrets[("storage", "logs-conn")], store.secrets[("team-a", "data-conn")]

    def test_syncs_changed_source(self, store, linked):
        """Test that a changed source is copied to its propagated secret."""
        store.secrets[("storage", "logs-conn")]["data"] = {"bucket": "bmV3"}

        SecretPropagatingReconciler(store).reconcile(Request("team-a", "data-conn"))

        assert store.secrets[("team-a", "data-conn")]["data"] == {"bucket": "bmV3"}

    def test_no_write_when_in_sync(self, store, linked):
        """Test that an in-sync copy is not written."""
        store.calls.clear()

        SecretPropagatingReconciler(store).reconcile(Request("team-a", "data-conn"))

        assert store.ops("update_secret") == []

    def test_refuses_recreated_source(self, store, linked):
        """Test that a source replaced under the same name is not trusted."""
        store.secrets[("storage", "logs-conn")]["metadata"]["uid"] = "recreated"

        with pytest.raises(PropagationError):
            SecretPropagatingReconciler(store).reconcile(Request("team-a", "data-conn"))

    def test_refuses_source_without_consent(self, store, linked):
        """Test that the source must name the copy."""
        store.secrets[("storage", "logs-conn")]["metadata"]["annotations"] = {}
        store.secrets[("storage", "logs-conn")]["data"] = {"bucket": "bmV3"}

        with pytest.raises(PropagationError):
            SecretPropagatingReconciler(store).reconcile(Request("team-a", "data-conn"))

        assert store.secrets[("team-a", "data-conn")]["data"] == {"bucket": "bG9ncw=="}

    def test_missing_secrets_are_ignored(self, store):
        """Test that absent secrets end the reconcile quietly."""
        result = SecretPropagatingReconciler(store).reconcile(Request("team-a", "gone"))
        assert not result.requeue
