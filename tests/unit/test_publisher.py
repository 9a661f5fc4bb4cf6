"""Tests for connection detail publishing."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from managed_operator.errors import PublishError
from managed_operator.reconcilers.publisher import APISecretPublisher, PublisherChain
from managed_operator.utils import meta
from managed_operator.utils.secrets import decode_details


@pytest.fixture
def bucket(make_bucket):
    return make_bucket(writeConnectionSecretToRef={"namespace": "storage", "name": "logs-conn"})


class TestAPISecretPublisher:
    """Test APISecretPublisher."""

    def test_creates_secret(self, store, bucket):
        """Test that the first publish creates a secret owned by the managed resource."""
        APISecretPublisher(store).publish_connection(bucket, {"bucket": b"logs"})

        secret = store.secrets[("storage", "logs-conn")]
        assert decode_details(secret["data"]) == {"bucket": b"logs"}
        assert meta.is_controlled_by(secret, meta.get_uid(bucket))

    def test_publish_is_additive(self, store, bucket):
        """Test that keys not in the new details are kept."""
        publisher = APISecretPublisher(store)
        publisher.publish_connection(bucket, {"bucket": b"logs", "region": b"eu"})

        publisher.publish_connection(bucket, {"region": b"us"})

        secret = store.secrets[("storage", "logs-conn")]
        assert decode_details(secret["data"]) == {"bucket": b"logs", "region": b"us"}

    def test_empty_details_do_not_write(self, store, bucket):
        """Test that publishing nothing to an existing secret makes no write."""
        publisher = APISecretPublisher(store)
        publisher.publish_connection(bucket, {"bucket": b"logs"})

        publisher.publish_connection(bucket, {})

        assert store.ops("update_secret") == []

    def test_refuses_secret_of_another_owner(self, store, bucket):
        """Test that a secret controlled by someone else is not touched."""
        store.put_secret(
            {
                "metadata": {
                    "name": "logs-conn",
                    "namespace": "storage",
                    "ownerReferences": [{"uid": "someone-else", "controller": True}],
                },
                "data": {},
            }
        )

        with pytest.raises(PublishError):
            APISecretPublisher(store).publish_connection(bucket, {"bucket": b"logs"})

        assert store.ops("update_secret") == []

    def test_no_secret_reference(self, store, make_bucket):
        """Test that nothing happens without a connection secret reference."""
        APISecretPublisher(store).publish_connection(make_bucket(), {"bucket": b"logs"})
        assert store.secrets == {}


class TestPublisherChain:
    """Test PublisherChain."""

    def test_runs_in_order_and_stops_on_error(self):
        """Test that the chain stops at the first failing publisher."""
        first = MagicMock()
        first.publish_connection.side_effect = PublishError("boom")
        second = MagicMock()

        with pytest.raises(PublishError):
            PublisherChain(first, second).publish_connection({}, {})

        second.publish_connection.assert_not_called()
