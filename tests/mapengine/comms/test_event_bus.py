"""Unit tests for EventBus — synchronous pub/sub.

Tests subscribe/unsubscribe, publish/receive, wildcard delivery and
dispatch ordering.
"""
from __future__ import annotations

import pytest

from mapengine.comms.event_bus import EventBus


@pytest.mark.unit
class TestEventBusBasics:
    """Core subscribe/publish/unsubscribe functionality."""

    def test_subscribe_returns_handler(self):
        bus = EventBus()
        handler = lambda msg: None  # noqa: E731
        assert bus.subscribe("x", handler) is handler

    def test_publish_delivers_to_subscriber(self):
        bus = EventBus()
        got = []
        bus.subscribe("test_event", got.append)
        bus.publish("test_event", {"key": "value"})
        assert got == [{"type": "test_event", "data": {"key": "value"}}]

    def test_publish_without_data(self):
        bus = EventBus()
        got = []
        bus.subscribe("ping", got.append)
        bus.publish("ping")
        assert got == [{"type": "ping"}]

    def test_other_event_types_not_delivered(self):
        bus = EventBus()
        got = []
        bus.subscribe("a", got.append)
        bus.publish("b", {})
        assert got == []

    def test_wildcard_receives_everything(self):
        bus = EventBus()
        got = []
        bus.subscribe("*", got.append)
        bus.publish("a")
        bus.publish("b")
        assert [m["type"] for m in got] == ["a", "b"]

    def test_unsubscribe_stops_delivery(self):
        bus = EventBus()
        got = []
        bus.subscribe("a", got.append)
        bus.unsubscribe("a", got.append)
        bus.publish("a")
        assert got == []

    def test_unsubscribe_unknown_is_noop(self):
        bus = EventBus()
        bus.unsubscribe("a", lambda msg: None)


@pytest.mark.unit
class TestEventBusOrdering:

    def test_handlers_run_in_subscription_order(self):
        bus = EventBus()
        order = []
        bus.subscribe("e", lambda msg: order.append(1))
        bus.subscribe("e", lambda msg: order.append(2))
        bus.subscribe("*", lambda msg: order.append("w"))
        bus.publish("e")
        assert order == [1, 2, "w"]

    def test_nested_publish_is_depth_first(self):
        bus = EventBus()
        order = []

        def first(msg):
            order.append("first")
            bus.publish("inner")

        bus.subscribe("outer", first)
        bus.subscribe("outer", lambda msg: order.append("second"))
        bus.subscribe("inner", lambda msg: order.append("inner"))
        bus.publish("outer")
        assert order == ["first", "inner", "second"]

    def test_handler_exception_propagates(self):
        bus = EventBus()

        def boom(msg):
            raise RuntimeError("boom")

        bus.subscribe("e", boom)
        with pytest.raises(RuntimeError):
            bus.publish("e")
