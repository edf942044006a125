# tests/test_events.py

from __future__ import annotations

import logging

import pytest

from taskgraph.core.events import NotificationBus, TaskEvent


def test_delivery_follows_subscription_order() -> None:
    bus = NotificationBus()
    calls: list[str] = []
    bus.subscribe(lambda e, p: calls.append(f"a:{e}:{p}"))
    bus.subscribe(lambda e, p: calls.append(f"b:{e}:{p}"))

    bus.publish(TaskEvent.TASK_CREATED, 1)

    assert calls == ["a:task_created:1", "b:task_created:1"]


def test_failing_subscriber_is_isolated(caplog: pytest.LogCaptureFixture) -> None:
    bus = NotificationBus()
    calls: list[str] = []

    def boom(event, payload):
        raise RuntimeError("subscriber bug")

    bus.subscribe(boom)
    bus.subscribe(lambda e, p: calls.append(e))

    with caplog.at_level(logging.ERROR, logger="taskgraph.core.events"):
        bus.publish("tasks_updated", None)

    assert calls == ["tasks_updated"]
    assert caplog.records


def test_unsubscribe_by_handle_or_callback() -> None:
    bus = NotificationBus()
    calls: list[str] = []

    def cb(event, payload):
        calls.append(event)

    sub = bus.subscribe(cb)
    other = bus.subscribe(lambda e, p: calls.append("other"))
    assert bus.subscriber_count() == 2

    sub.cancel()
    bus.publish("x", None)
    assert calls == ["other"]

    assert bus.unsubscribe(other) is True
    assert bus.unsubscribe(other) is False
    assert bus.unsubscribe(cb) is False
    assert bus.subscriber_count() == 0


def test_subscriber_added_during_publish_waits_for_next_event() -> None:
    bus = NotificationBus()
    calls: list[str] = []

    def late(event, payload):
        calls.append(f"late:{event}")

    def adder(event, payload):
        calls.append(f"adder:{event}")
        bus.subscribe(late)

    bus.subscribe(adder)
    bus.publish("one", None)
    assert calls == ["adder:one"]


def test_subscribe_requires_callable() -> None:
    with pytest.raises(TypeError):
        NotificationBus().subscribe("not callable")  # type: ignore[arg-type]


def test_unsubscribe_bound_method() -> None:
    class Listener:
        def __init__(self) -> None:
            self.seen: list[str] = []

        def on_event(self, event, payload) -> None:
            self.seen.append(event)

    bus = NotificationBus()
    listener = Listener()
    other = Listener()
    bus.subscribe(listener.on_event)
    bus.subscribe(other.on_event)

    # each attribute access builds a new bound-method object
    assert bus.unsubscribe(listener.on_event) is True
    bus.publish(TaskEvent.TASK_UPDATED, None)

    assert listener.seen == []
    assert other.seen == ["task_updated"]
    assert bus.unsubscribe(listener.on_event) is False
