"""Tests for Kubernetes event utilities."""

from __future__ import annotations

from unittest.mock import patch

from managed_operator.utils.events import EventRecorder, NopEventRecorder, emit_event


class TestEmitEvent:
    """Test cases for emit_event function."""

    @patch("managed_operator.utils.events.kopf.event")
    def test_emit_event_normal(self, mock_event):
        """Test emitting normal event."""
        obj = {"kind": "Bucket", "metadata": {"name": "logs"}}

        emit_event(obj, "TestReason", "Test message")

        mock_event.assert_called_once_with(
            obj,
            reason="TestReason",
            message="Test message",
            type="Normal",
        )

    @patch("managed_operator.utils.events.kopf.event")
    def test_emit_event_warning(self, mock_event):
        """Test emitting warning event."""
        obj = {"kind": "Bucket", "metadata": {"name": "logs"}}

        emit_event(obj, "TestReason", "Test message", type_="Warning")

        mock_event.assert_called_once_with(
            obj,
            reason="TestReason",
            message="Test message",
            type="Warning",
        )


class TestEventRecorder:
    """Test cases for the event recorders."""

    @patch("managed_operator.utils.events.kopf.event")
    def test_recorder_types(self, mock_event):
        """Test that the recorder posts Normal and Warning events."""
        obj = {"kind": "BucketClaim", "metadata": {"name": "data", "namespace": "team-a"}}
        recorder = EventRecorder()

        recorder.normal(obj, "Bound", "bound")
        recorder.warning(obj, "BindFailed", "failed")

        types = [c.kwargs["type"] for c in mock_event.call_args_list]
        assert types == ["Normal", "Warning"]

    @patch("managed_operator.utils.events.kopf.event")
    def test_nop_recorder_posts_nothing(self, mock_event):
        """Test that the nop recorder drops events."""
        recorder = NopEventRecorder()

        recorder.normal({}, "Bound", "bound")
        recorder.warning({}, "BindFailed", "failed")

        mock_event.assert_not_called()

    @patch("managed_operator.utils.events.kopf.event")
    def test_post_failure_does_not_raise(self, mock_event):
        """Test that an event the API refuses is logged instead of raised."""
        mock_event.side_effect = RuntimeError("events are forbidden")
        recorder = EventRecorder()

        with patch("managed_operator.utils.events.logger") as mock_logger:
            recorder.warning({"metadata": {"name": "logs"}}, "ObserveFailed", "timeout")

        mock_event.assert_called_once()
        mock_logger.warning.assert_called_once()
        assert "ObserveFailed" in mock_logger.warning.call_args.args[0]
