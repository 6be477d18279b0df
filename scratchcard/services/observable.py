"""
Observable values.

A minimal "current value + subscribe to changes" primitive. The lifecycle
exposes its card, error and loading state through it so any presentation
layer can either poll `.value` or react to changes.

All mutation happens on the event loop thread, so no locking is needed.
"""

import logging
from collections.abc import Callable
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Subscriber = Callable[[T], None]


class ObservableValue(Generic[T]):
    """Holds one value and notifies subscribers when it changes."""

    def __init__(self, initial: T):
        self._value = initial
        self._subscribers: list[Subscriber[T]] = []

    @property
    def value(self) -> T:
        return self._value

    def set(self, value: T) -> bool:
        """
        Replace the value.

        Subscribers are notified only when the new value differs from the
        current one.

        Returns:
            True if the value changed
        """
        if value == self._value:
            return False
        self._value = value
        self._notify()
        return True

    def subscribe(self, callback: Subscriber[T]) -> Callable[[], None]:
        """
        Register a callback invoked with each new value.

        Returns:
            A function that removes the subscription (safe to call twice)
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _notify(self) -> None:
        # Copy so callbacks may unsubscribe while being notified
        for callback in list(self._subscribers):
            try:
                callback(self._value)
            except Exception:
                logger.exception("OBSERVER_FAILED: subscriber=%r", callback)

    def __repr__(self) -> str:
        return f"ObservableValue({self._value!r})"
