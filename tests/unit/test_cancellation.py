"""Tests for the per-stream cancellation token."""

import threading

from chatbranch.cancellation import CancellationToken


class TestCancellationToken:
    def test_starts_uncancelled(self):
        token = CancellationToken()
        assert token.cancelled is False
        assert "cancelled=False" in repr(token)

    def test_cancel_is_one_shot(self):
        token = CancellationToken()

        assert token.cancel() is True
        assert token.cancel() is False
        assert token.cancelled is True

    def test_callbacks_run_once_in_order(self):
        token = CancellationToken()
        calls = []
        token.add_callback(lambda: calls.append("first"))
        token.add_callback(lambda: calls.append("second"))

        token.cancel()
        token.cancel()

        assert calls == ["first", "second"]

    def test_late_callback_runs_immediately(self):
        token = CancellationToken()
        token.cancel()
        calls = []

        token.add_callback(lambda: calls.append("late"))

        assert calls == ["late"]

    def test_tokens_are_independent(self):
        first = CancellationToken()
        second = CancellationToken()

        first.cancel()

        assert second.cancelled is False

    def test_concurrent_cancel_has_one_winner(self):
        token = CancellationToken()
        calls = []
        token.add_callback(lambda: calls.append(1))
        results = []
        barrier = threading.Barrier(8)

        def worker():
            barrier.wait()
            results.append(token.cancel())

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert results.count(True) == 1
        assert calls == [1]
