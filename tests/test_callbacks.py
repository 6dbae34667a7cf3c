"""Tests for the callback queue."""

from unittest.mock import MagicMock

from cxx_lsp.callbacks import CallbackQueue


class TestCallbackQueue:
    """Test queuing and draining of continuations."""

    def test_drain_invokes_once(self):
        queue = CallbackQueue()
        callback = MagicMock()
        queue.enqueue(callback)
        assert queue.drain() == 1
        assert queue.drain() == 0
        callback.assert_called_once_with()
        assert len(queue) == 0

    def test_clear_discards(self):
        queue = CallbackQueue()
        callback = MagicMock()
        queue.enqueue(callback)
        queue.clear()
        queue.drain()
        callback.assert_not_called()

    def test_failing_callback_does_not_stop_drain(self):
        queue = CallbackQueue()
        after = MagicMock()
        queue.enqueue(MagicMock(side_effect=RuntimeError("boom")))
        queue.enqueue(after)
        assert queue.drain() == 2
        after.assert_called_once_with()

    def test_enqueue_during_drain_waits(self):
        queue = CallbackQueue()
        late = MagicMock()
        queue.enqueue(lambda: queue.enqueue(late))
        queue.drain()
        late.assert_not_called()
        assert len(queue) == 1
