"""Tests for the subscription registry."""

import threading

from arena_server.event_bus import SubscriptionRegistry


async def handler(_event) -> None:
    return None


def test_match_returns_registration_order_across_exact_and_wildcard():
    registry = SubscriptionRegistry()
    wildcard = registry.add("matches.*", handler, "notifications")
    exact = registry.add("matches.match.created", handler, "tournaments")
    everything = registry.add("*", handler, "analytics")

    assert registry.match("matches.match.created") == (wildcard, exact, everything)
    assert registry.match("matches.score.updated") == (wildcard, everything)
    assert registry.match("chat.message.sent") == (everything,)


def test_match_returns_snapshot():
    registry = SubscriptionRegistry()
    first = registry.add("users.*", handler, "a")
    snapshot = registry.match("users.profile.created")

    registry.remove(first)
    registry.add("users.*", handler, "b")

    assert snapshot == (first,)
    assert [s.owner_module for s in registry.match("users.profile.created")] == ["b"]


def test_same_handler_twice_gives_two_subscriptions():
    registry = SubscriptionRegistry()
    a = registry.add("users.*", handler, "x")
    b = registry.add("users.*", handler, "x")

    assert a != b
    assert len(registry) == 2
    assert registry.remove(a) is True
    assert registry.remove(a) is False
    assert len(registry) == 1


def test_all_and_clear_by_owner():
    registry = SubscriptionRegistry()
    registry.add("users.*", handler, "notifications")
    registry.add("teams.*", handler, "notifications")
    kept = registry.add("*", handler, "analytics")

    assert len(registry.all("notifications")) == 2
    assert registry.clear("notifications") == 2
    assert registry.all() == [kept]
    assert kept in registry
    assert registry.clear() == 1
    assert len(registry) == 0


def test_concurrent_add_and_remove():
    registry = SubscriptionRegistry()

    def churn():
        for _ in range(200):
            subscription = registry.add("matches.*", handler, "worker")
            registry.match("matches.match.created")
            registry.remove(subscription)

    threads = [threading.Thread(target=churn) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(registry) == 0
    assert registry.match("matches.match.created") == ()
