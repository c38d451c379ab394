from __future__ import annotations

import pytest

from dataview.core.notifications import Publisher, ReplayPublisher, SubscriptionManager


def test_publisher_delivers_in_subscription_order():
    pub = Publisher("test")
    received = []
    pub.subscribe(lambda v: received.append(("a", v)))
    pub.subscribe(lambda v: received.append(("b", v)))

    pub.publish(1)

    assert received == [("a", 1), ("b", 1)]
    assert pub.subscriber_count == 2


def test_publisher_does_not_replay():
    pub = Publisher()
    pub.publish("old")
    received = []
    pub.subscribe(received.append)
    assert received == []


def test_unsubscribe_stops_delivery_and_is_idempotent():
    pub = Publisher()
    received = []
    sub = pub.subscribe(received.append)

    pub.publish(1)
    sub.unsubscribe()
    sub.unsubscribe()
    pub.publish(2)

    assert received == [1]
    assert sub.closed
    assert pub.subscriber_count == 0


def test_subscription_as_context_manager():
    pub = Publisher()
    received = []
    with pub.subscribe(received.append):
        pub.publish(1)
    pub.publish(2)
    assert received == [1]


def test_unsubscribe_during_delivery_skips_closed_subscribers():
    pub = Publisher()
    received = []
    second = None

    def first(v):
        received.append(("first", v))
        second.unsubscribe()

    pub.subscribe(first)
    second = pub.subscribe(lambda v: received.append(("second", v)))

    pub.publish(1)
    assert received == [("first", 1)]


def test_subscribe_requires_callable():
    with pytest.raises(TypeError):
        Publisher().subscribe(None)


def test_replay_publisher_replays_only_after_first_publication():
    pub = ReplayPublisher()
    early = []
    pub.subscribe(early.append)
    assert early == []
    assert not pub.has_value
    assert pub.last_value is None

    pub.publish("v1")
    late = []
    pub.subscribe(late.append)

    assert early == ["v1"]
    assert late == ["v1"]
    assert pub.last_value == "v1"


def test_replay_publisher_clear_stops_replay_until_next_publication():
    pub = ReplayPublisher()
    pub.publish("v1")
    pub.clear()

    late = []
    pub.subscribe(late.append)
    assert late == []
    assert not pub.has_value

    pub.publish("v2")
    assert late == ["v2"]


def test_subscription_manager_closes_everything():
    pub = Publisher()
    received = []
    manager = SubscriptionManager(owner=object())
    manager.add(pub.subscribe(received.append))
    manager.add(pub.subscribe(received.append))
    assert len(manager) == 2

    manager.close_all()
    pub.publish(1)

    assert received == []
    assert len(manager) == 0
