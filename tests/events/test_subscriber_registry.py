"""Tests for SubscriberRegistry."""

import logging

import pytest

from itemcache.events import SubscriberRegistry


class TestSubscriberRegistry:
    """Test registration, ordering and fault isolation."""

    def test_emit_in_registration_order(self):
        registry = SubscriberRegistry("test")
        calls = []
        registry.subscribe(lambda value: calls.append(("a", value)))
        registry.subscribe(lambda value: calls.append(("b", value)))

        registry.emit(1)

        assert calls == [("a", 1), ("b", 1)]

    def test_duplicate_registration_ignored(self):
        registry = SubscriberRegistry("test")
        calls = []

        def observer(value):
            calls.append(value)

        registry.subscribe(observer)
        registry.subscribe(observer)
        registry.emit("x")

        assert len(registry) == 1
        assert calls == ["x"]

    def test_unregister_function(self):
        registry = SubscriberRegistry("test")
        calls = []

        def observer(value):
            calls.append(value)

        unregister = registry.subscribe(observer)
        assert observer in registry

        unregister()
        unregister()
        registry.emit("x")

        assert observer not in registry
        assert calls == []

    def test_rejects_non_callable(self):
        with pytest.raises(TypeError):
            SubscriberRegistry("test").subscribe("not callable")

    def test_observer_may_unsubscribe_while_notified(self):
        registry = SubscriberRegistry("test")
        calls = []

        def once(value):
            calls.append(("once", value))
            registry.unsubscribe(once)

        registry.subscribe(once)
        registry.subscribe(lambda value: calls.append(("always", value)))

        registry.emit(1)
        registry.emit(2)

        assert calls == [("once", 1), ("always", 1), ("always", 2)]

    def test_raising_observer_is_logged_and_skipped(self, caplog):
        registry = SubscriberRegistry("test")
        calls = []

        def broken(value):
            raise RuntimeError("observer bug")

        registry.subscribe(broken)
        registry.subscribe(calls.append)

        with caplog.at_level(logging.ERROR, logger="itemcache.events.emitter"):
            registry.emit("snapshot")

        assert calls == ["snapshot"]
        assert "observer bug" in caplog.text

    def test_clear(self):
        registry = SubscriberRegistry("test")
        registry.subscribe(print)

        registry.clear()

        assert len(registry) == 0
