"""
Tests for StreamPublisher.
"""

import queue
import threading

import pytest

from chatgate.core.publisher import ClientDisconnectedError, StreamPublisher


class TestStreamPublisher:
    def test_events_in_order_until_complete(self):
        publisher = StreamPublisher()
        publisher.send("status", "working")
        publisher.send("token", '"hi"')
        publisher.complete()

        assert list(publisher.events(poll_interval=0.01)) == [
            ("status", "working"),
            ("token", '"hi"'),
        ]
        assert publisher.closed

    def test_send_after_complete_raises(self):
        publisher = StreamPublisher()
        publisher.complete()

        with pytest.raises(ClientDisconnectedError):
            publisher.send("token", "late")

    def test_complete_with_error(self):
        publisher = StreamPublisher()
        error = RuntimeError("boom")

        publisher.complete_with_error(error)
        publisher.complete_with_error(ValueError("second"))

        assert publisher.error is error

    def test_disconnect_fires_callbacks_once(self):
        publisher = StreamPublisher()
        fired = []
        publisher.on_disconnect(lambda: fired.append("disconnect"))

        publisher.disconnect()
        publisher.disconnect()

        assert fired == ["disconnect"]
        assert publisher.disconnected
        with pytest.raises(ClientDisconnectedError):
            publisher.send("token", "x")

    def test_callback_failure_does_not_propagate(self):
        publisher = StreamPublisher()
        fired = []

        def bad():
            raise RuntimeError("callback bug")

        publisher.on_disconnect(bad)
        publisher.on_disconnect(lambda: fired.append(True))

        publisher.disconnect()

        assert fired == [True]

    def test_timeout_ends_iteration(self):
        publisher = StreamPublisher(timeout=0.05)
        fired = []
        publisher.on_timeout(lambda: fired.append("timeout"))
        publisher.send("status", "working")

        events = list(publisher.events(poll_interval=0.01))

        assert events == [("status", "working")]
        assert publisher.timed_out
        assert fired == ["timeout"]
        assert publisher.error is None

    def test_get_nowait(self):
        publisher = StreamPublisher()

        with pytest.raises(queue.Empty):
            publisher.get_nowait()

        publisher.send("a", "1")
        publisher.complete()
        assert publisher.get_nowait() == ("a", "1")
        assert publisher.get_nowait() is None
        # End of stream stays visible to later readers
        assert publisher.get_nowait() is None

    def test_producer_thread(self):
        publisher = StreamPublisher(timeout=5.0)

        def produce():
            for i in range(50):
                publisher.send("token", str(i))
            publisher.complete()

        thread = threading.Thread(target=produce)
        thread.start()
        events = list(publisher.events(poll_interval=0.01))
        thread.join()

        assert [data for _, data in events] == [str(i) for i in range(50)]
