"""Tests for progress channel and cancellation token."""

import queue
import threading
from unittest.mock import Mock

import pytest

from archive_curator.core.progress import CancellationToken, ProgressChannel, QueueProgressSink
from archive_curator.schemas.common import ProgressEvent


def event(step: int, complete: bool = False) -> ProgressEvent:
    return ProgressEvent("pdf_screens", step, 3, "Rendering", is_complete=complete)


class TestProgressChannel:
    def test_fan_out(self) -> None:
        channel = ProgressChannel()
        first, second = Mock(), Mock()
        channel.subscribe(first)
        channel.subscribe(second)

        channel.emit(event(1))

        first.assert_called_once_with(event(1))
        second.assert_called_once_with(event(1))

    def test_unsubscribe(self) -> None:
        channel = ProgressChannel()
        callback = Mock()
        unsubscribe = channel.subscribe(callback)

        unsubscribe()
        unsubscribe()  # second call is harmless
        channel.emit(event(1))

        callback.assert_not_called()

    def test_failing_subscriber_does_not_stop_others(self) -> None:
        channel = ProgressChannel()
        channel.subscribe(Mock(side_effect=RuntimeError("ui gone")))
        healthy = Mock()
        channel.subscribe(healthy)

        channel.emit(event(2))

        healthy.assert_called_once()


class TestQueueProgressSink:
    def test_collects_events_in_order(self) -> None:
        channel = ProgressChannel()
        sink = QueueProgressSink(channel)

        for step in (1, 2, 3):
            channel.emit(event(step))

        assert sink.get(timeout=1).current_step == 1
        assert [e.current_step for e in sink.drain()] == [2, 3]
        assert sink.drain() == []

    def test_close_stops_collection(self) -> None:
        channel = ProgressChannel()
        sink = QueueProgressSink(channel)
        sink.close()

        channel.emit(event(1))

        with pytest.raises(queue.Empty):
            sink.get(timeout=0.01)


class TestCancellationToken:
    def test_initial_state(self) -> None:
        token = CancellationToken()
        assert not token.cancelled
        assert token.wait(0) is False

    def test_cancel(self) -> None:
        token = CancellationToken()
        token.cancel()
        assert token.cancelled
        assert token.wait(10) is True

    def test_wait_interrupted_by_cancel(self) -> None:
        token = CancellationToken()
        timer = threading.Timer(0.05, token.cancel)
        timer.start()
        try:
            assert token.wait(5) is True
        finally:
            timer.cancel()


class TestProgressEvent:
    def test_fraction(self) -> None:
        assert event(1).fraction == pytest.approx(1 / 3)
        assert ProgressEvent("pdf_screens", 0, 0, "Done").fraction == 0.0

    def test_to_dict(self) -> None:
        assert event(3, complete=True).to_dict() == {
            "operation": "pdf_screens",
            "current_step": 3,
            "total_steps": 3,
            "step_label": "Rendering",
            "message": "",
            "is_complete": True,
        }
