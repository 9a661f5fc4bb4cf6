"""Tests for the controller manager and its event mappers."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from managed_operator.buckets import BUCKET, BUCKET_CLAIM
from managed_operator.constants import (
    ANNOTATION_PROPAGATE_FROM_PREFIX,
    ANNOTATION_PROPAGATE_TO_PREFIX,
)
from managed_operator.controller import Manager, Watch
from managed_operator.controller.manager import (
    enqueue_request_for_claim,
    enqueue_request_for_object,
    enqueue_request_for_propagated,
)
from managed_operator.errors import ReferencerDefinitionError, StoreError
from managed_operator.resource import Request, Result
from managed_operator.utils.context import remaining_time

REQUEST = Request("team-a", "my-bucket")


def _reconciler(name: str = "claimbinding/bucketclaim") -> MagicMock:
    reconciler = MagicMock()
    reconciler.name = name
    reconciler.reconcile_with_metrics.return_value = Result()
    return reconciler


@pytest.fixture
def mock_event():
    with patch("managed_operator.controller.manager.kopf.on.event") as mock:
        yield mock


@pytest.fixture
def manager(mock_event):
    return Manager(timeout=5.0, workers=2)


class TestMappers:
    """Test the watch event mappers."""

    def test_object(self):
        """Test that an object maps to itself."""
        body = {"metadata": {"name": "my-bucket", "namespace": "team-a"}}
        assert enqueue_request_for_object(body) == [REQUEST]

    def test_claim(self):
        """Test that a managed resource maps to its claim."""
        body = {"spec": {"claimRef": {"name": "my-bucket", "namespace": "team-a"}}}
        assert enqueue_request_for_claim(body) == [REQUEST]
        assert enqueue_request_for_claim({"spec": {}}) == []

    def test_propagated_source(self):
        """Test that a source secret maps to its copies."""
        body = {
            "metadata": {
                "name": "logs-conn",
                "namespace": "storage",
                "annotations": {ANNOTATION_PROPAGATE_TO_PREFIX + "u1": "team-a/data-conn"},
            }
        }
        assert enqueue_request_for_propagated(body) == [Request("team-a", "data-conn")]

    def test_propagated_copy(self):
        """Test that a copy maps to itself."""
        body = {
            "metadata": {
                "name": "data-conn",
                "namespace": "team-a",
                "annotations": {ANNOTATION_PROPAGATE_FROM_PREFIX + "u1": "storage/logs-conn"},
            }
        }
        assert enqueue_request_for_propagated(body) == [Request("team-a", "data-conn")]

    def test_propagated_malformed(self):
        """Test that a malformed annotation maps to nothing."""
        body = {
            "metadata": {
                "name": "data-conn",
                "namespace": "team-a",
                "annotations": {ANNOTATION_PROPAGATE_FROM_PREFIX + "u1": "no-namespace"},
            }
        }
        assert enqueue_request_for_propagated(body) == []

    def test_unrelated_secret(self):
        """Test that secrets without propagation annotations map to nothing."""
        assert enqueue_request_for_propagated({"metadata": {"name": "x"}}) == []


class TestManagerWatches:
    """Test registering watches with kopf."""

    def test_registers_event_handler(self, manager, mock_event):
        """Test that each watch becomes a kopf event handler with a unique id."""
        manager.add_controller(
            _reconciler(),
            [Watch(BUCKET_CLAIM), Watch(BUCKET, enqueue_request_for_claim)],
        )

        ids = [c.kwargs["id"] for c in mock_event.call_args_list]
        assert ids == [
            "claimbinding/bucketclaim/bucketclaims/enqueue_request_for_object",
            "claimbinding/bucketclaim/buckets/enqueue_request_for_claim",
        ]
        first = mock_event.call_args_list[0].kwargs
        assert first["group"] == BUCKET_CLAIM.group
        assert first["version"] == BUCKET_CLAIM.version
        assert first["plural"] == BUCKET_CLAIM.plural
        assert "registry" not in first

    def test_event_handler_queues_requests(self, manager, mock_event):
        """Test that the registered handler queues the mapped requests."""
        controller = manager.add_controller(
            _reconciler(), [Watch(BUCKET, enqueue_request_for_claim)]
        )
        on_event = mock_event.return_value.call_args.args[0]

        on_event(body={"spec": {"claimRef": {"name": "my-bucket", "namespace": "team-a"}}})

        assert controller.queue.get(timeout=0) == REQUEST

    def test_custom_registry(self, mock_event):
        """Test that a given kopf registry is passed through."""
        registry = MagicMock()
        Manager(registry=registry).add_controller(_reconciler(), [Watch(BUCKET)])
        assert mock_event.call_args.kwargs["registry"] is registry

    def test_workers(self, manager):
        """Test the default and per controller worker counts."""
        assert manager.add_controller(_reconciler("a/x"), []).workers == 2
        assert manager.add_controller(_reconciler("b/x"), [], workers=1).workers == 1


class TestProcessNext:
    """Test processing queued requests."""

    def test_success_forgets_backoff(self, manager):
        """Test that a successful reconcile resets the request's backoff."""
        reconciler = _reconciler()
        controller = manager.add_controller(reconciler, [])
        controller.queue.when(REQUEST)
        controller.queue.add(REQUEST)

        assert manager.process_next(controller, timeout=0)

        reconciler.reconcile_with_metrics.assert_called_once_with(REQUEST)
        assert controller.queue.num_requeues(REQUEST) == 0
        assert len(controller.queue) == 0

    def test_requeue_after(self, manager):
        """Test that a requested requeue waits for the given delay."""
        reconciler = _reconciler()
        reconciler.reconcile_with_metrics.return_value = Result(30.0)
        controller = manager.add_controller(reconciler, [])
        controller.queue.add(REQUEST)

        with patch.object(controller.queue, "add_after") as mock_add_after:
            manager.process_next(controller, timeout=0)

        mock_add_after.assert_called_once_with(REQUEST, 30.0)

    def test_error_is_rate_limited(self, manager):
        """Test that a failed reconcile is retried with backoff."""
        reconciler = _reconciler()
        reconciler.reconcile_with_metrics.side_effect = StoreError("unavailable")
        controller = manager.add_controller(reconciler, [])
        controller.queue.add(REQUEST)

        assert manager.process_next(controller, timeout=0)

        assert controller.queue.num_requeues(REQUEST) == 1
        assert len(controller.queue) == 0

    def test_referencer_definition_error_is_dropped(self, manager):
        """Test that a request failing on a broken referencer is not retried."""
        reconciler = _reconciler()
        reconciler.reconcile_with_metrics.side_effect = ReferencerDefinitionError("bad path")
        controller = manager.add_controller(reconciler, [])
        controller.queue.add(REQUEST)

        with patch.object(controller.queue, "add_after") as mock_add_after:
            manager.process_next(controller, timeout=0)

        mock_add_after.assert_not_called()
        assert controller.queue.num_requeues(REQUEST) == 0

    def test_reconcile_runs_with_deadline(self, manager):
        """Test that reconciles run under the manager's deadline."""
        seen = []
        reconciler = _reconciler()
        reconciler.reconcile_with_metrics.side_effect = lambda request: (
            seen.append(remaining_time()) or Result()
        )
        controller = manager.add_controller(reconciler, [])
        controller.queue.add(REQUEST)

        manager.process_next(controller, timeout=0)

        assert 0 < seen[0] <= 5.0

    def test_empty_queue(self, manager):
        """Test that nothing is reconciled when the queue stays empty."""
        reconciler = _reconciler()
        controller = manager.add_controller(reconciler, [])

        assert not manager.process_next(controller, timeout=0)
        reconciler.reconcile_with_metrics.assert_not_called()


class TestManagerLifecycle:
    """Test starting and stopping worker threads."""

    def test_start_and_stop(self, manager):
        """Test that workers reconcile queued requests until stopped."""
        reconciler = _reconciler()
        controller = manager.add_controller(reconciler, [], workers=1)

        manager.start()
        assert manager.is_running()
        controller.queue.add(REQUEST)
        manager.stop(timeout=5)

        assert not manager.is_running()
        assert controller.threads == []
        reconciler.reconcile_with_metrics.assert_called_once_with(REQUEST)
