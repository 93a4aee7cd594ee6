"""Tests for the event emitter."""

import pytest

from dicetrain.events import EventEmitter


class TestEventEmitter:
    def setup_method(self):
        self.events = EventEmitter()
        self.calls = []

    def test_listeners_called_in_order(self):
        self.events.subscribe("tick", lambda n: self.calls.append(("a", n)))
        self.events.subscribe("tick", lambda n: self.calls.append(("b", n)))
        assert self.events.emit("tick", 1) == 2
        assert self.calls == [("a", 1), ("b", 1)]

    def test_unsubscribe_callable(self):
        unsubscribe = self.events.subscribe("tick", self.calls.append)
        unsubscribe()
        assert self.events.emit("tick", 1) == 0
        assert self.calls == []
        assert self.events.listener_count("tick") == 0

    def test_unsubscribe_unknown_listener(self):
        assert not self.events.unsubscribe("tick", self.calls.append)

    def test_event_without_listener_is_dropped(self):
        assert self.events.emit("nobody", 1, 2) == 0
        self.events.subscribe("nobody", self.calls.append)
        assert self.calls == []

    def test_listener_errors_propagate(self):
        def boom(value):
            raise RuntimeError(value)

        self.events.subscribe("tick", boom)
        with pytest.raises(RuntimeError):
            self.events.emit("tick", "bad")

    def test_unsubscribe_during_emit(self):
        unsubscribers = []

        def once(value):
            self.calls.append(value)
            unsubscribers[0]()

        unsubscribers.append(self.events.subscribe("tick", once))
        self.events.emit("tick", 1)
        self.events.emit("tick", 2)
        assert self.calls == [1]

    def test_clear(self):
        self.events.subscribe("a", self.calls.append)
        self.events.clear()
        assert self.events.listener_count("a") == 0
