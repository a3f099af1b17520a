"""Subscription registry owned by the event bus.

Maps topic patterns to the handlers interested in them. Exact patterns are
indexed by topic, wildcard patterns are kept in a list and tested by prefix.
All mutation and lookup happens under a lock, and lookups return an
immutable snapshot, so ``remove`` can run while a dispatch iterates over the
subscriptions it matched.
"""

import itertools
import threading
from collections.abc import Callable
from typing import Any

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from arena_server.utils.id_generator import generate_short_id

from .topics import is_wildcard, topic_matches, validate_pattern

T_Handler = Callable[..., Any]


class Subscription(BaseModel):
    """A registered handler. Also serves as the handle passed to ``unsubscribe``."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    pattern: str
    handler: Any
    owner_module: str
    subscription_id: str = Field(default_factory=generate_short_id)
    sequence: int = 0

    @property
    def handler_name(self) -> str:
        """Readable handler name for logs."""
        handler = self.handler
        name = getattr(handler, "__qualname__", None) or type(handler).__qualname__
        return f"{self.owner_module}:{name}"

    def matches(self, topic: str) -> bool:
        """Return True if this subscription selects the topic."""
        return topic_matches(self.pattern, topic)

    def __hash__(self) -> int:
        return hash(self.subscription_id)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Subscription) and other.subscription_id == self.subscription_id


class SubscriptionRegistry:
    """Thread-safe mapping from topic pattern to ordered subscriptions."""

    def __init__(self):
        self._exact: dict[str, list[Subscription]] = {}
        self._wildcards: list[Subscription] = []
        self._by_id: dict[str, Subscription] = {}
        self._sequence = itertools.count(1)
        self._lock = threading.Lock()

    def add(self, pattern: str, handler: T_Handler, owner_module: str) -> Subscription:
        """Register a handler under a pattern.

        Args:
            pattern: Exact topic or wildcard pattern
            handler: Callable receiving the event
            owner_module: Name of the registering module, for diagnostics

        Returns:
            The new subscription

        Raises:
            HandlerRegistrationError: If the pattern is invalid
        """
        validate_pattern(pattern)
        with self._lock:
            subscription = Subscription(
                pattern=pattern,
                handler=handler,
                owner_module=owner_module,
                sequence=next(self._sequence),
            )
            if is_wildcard(pattern):
                self._wildcards.append(subscription)
            else:
                self._exact.setdefault(pattern, []).append(subscription)
            self._by_id[subscription.subscription_id] = subscription
        return subscription

    def remove(self, subscription: Subscription) -> bool:
        """Remove a subscription.

        Returns:
            True if it was registered, False if it was already removed
        """
        with self._lock:
            if self._by_id.pop(subscription.subscription_id, None) is None:
                return False
            if is_wildcard(subscription.pattern):
                self._wildcards = [s for s in self._wildcards if s.subscription_id != subscription.subscription_id]
            else:
                remaining = [s for s in self._exact.get(subscription.pattern, []) if s.subscription_id != subscription.subscription_id]
                if remaining:
                    self._exact[subscription.pattern] = remaining
                else:
                    self._exact.pop(subscription.pattern, None)
            return True

    def match(self, topic: str) -> tuple[Subscription, ...]:
        """Snapshot of the subscriptions selecting a topic, in registration order."""
        with self._lock:
            matched = list(self._exact.get(topic, ()))
            matched.extend(s for s in self._wildcards if s.matches(topic))
        matched.sort(key=lambda s: s.sequence)
        return tuple(matched)

    def all(self, owner_module: str | None = None) -> list[Subscription]:
        """Return all subscriptions, optionally only those of one module."""
        with self._lock:
            subscriptions = list(self._by_id.values())
        if owner_module is not None:
            subscriptions = [s for s in subscriptions if s.owner_module == owner_module]
        return sorted(subscriptions, key=lambda s: s.sequence)

    def clear(self, owner_module: str | None = None) -> int:
        """Remove all subscriptions, or those of one module.

        Returns:
            Number of subscriptions removed
        """
        if owner_module is None:
            with self._lock:
                count = len(self._by_id)
                self._exact.clear()
                self._wildcards.clear()
                self._by_id.clear()
            logger.debug(f"Cleared all {count} subscriptions")
            return count

        removed = sum(1 for s in self.all(owner_module) if self.remove(s))
        logger.debug(f"Cleared {removed} subscriptions of module '{owner_module}'")
        return removed

    def __len__(self) -> int:
        with self._lock:
            return len(self._by_id)

    def __contains__(self, subscription: object) -> bool:
        if not isinstance(subscription, Subscription):
            return False
        with self._lock:
            return subscription.subscription_id in self._by_id
