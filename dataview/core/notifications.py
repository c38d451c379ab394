from __future__ import annotations

import logging
from typing import Any, Callable, Generic, List, Optional, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)


class _Nothing:
    def __repr__(self):
        return "<nothing published>"


NOTHING = _Nothing()


class Subscription:
    """
    Handle returned by {@link Publisher.subscribe}. The subscriber owns it and must call
    {@link unsubscribe} when done (or use it as a context manager).
    """

    def __init__(self, publisher: "Publisher", callback: Callable[[Any], None]):
        self._publisher = publisher
        self._callback = callback
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def unsubscribe(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._publisher._remove(self)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.unsubscribe()


class Publisher(Generic[T]):
    """
    Push-only notification stream.

    Delivery is synchronous, in subscription order, inside the call that publishes.
    Subscribers must not mutate the publishing engine from their callback.
    """

    def __init__(self, name: str = ""):
        self.name = name
        self._subscriptions: List[Subscription] = []

    def subscribe(self, callback: Callable[[T], None]) -> Subscription:
        if not callable(callback):
            raise TypeError("Subscriber callback must be callable")
        sub = Subscription(self, callback)
        self._subscriptions.append(sub)
        return sub

    def publish(self, payload: T) -> None:
        # snapshot so subscribers may unsubscribe while being notified
        for sub in list(self._subscriptions):
            if not sub.closed:
                sub._callback(payload)

    def _remove(self, sub: Subscription) -> None:
        try:
            self._subscriptions.remove(sub)
        except ValueError:
            pass

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)


class ReplayPublisher(Publisher[T]):
    """
    Stateful stream: a new subscriber immediately receives the last published payload,
    then every following one. Nothing is replayed before the first publication.
    """

    def __init__(self, name: str = ""):
        super().__init__(name)
        self._last: Any = NOTHING

    def subscribe(self, callback: Callable[[T], None]) -> Subscription:
        sub = super().subscribe(callback)
        if self._last is not NOTHING:
            callback(self._last)
        return sub

    def publish(self, payload: T) -> None:
        self._last = payload
        super().publish(payload)

    def clear(self) -> None:
        """Forget the last payload: later subscribers get nothing until the next publication"""
        self._last = NOTHING

    @property
    def last_value(self) -> Optional[T]:
        return None if self._last is NOTHING else self._last

    @property
    def has_value(self) -> bool:
        return self._last is not NOTHING


class SubscriptionManager:
    """
    Keeps the subscriptions a component opened so its teardown path can close them all at once.
    """

    def __init__(self, owner: Any = None):
        self.owner = owner
        self._subs: List[Subscription] = []

    def add(self, sub: Subscription) -> Subscription:
        self._subs.append(sub)
        return sub

    def close_all(self) -> None:
        subs, self._subs = self._subs, []
        for sub in subs:
            sub.unsubscribe()
        if subs:
            logger.debug(
                "Closed subscriptions",
                extra={"owner": type(self.owner).__name__, "n_subscriptions": len(subs)},
            )

    def __len__(self) -> int:
        return len(self._subs)
