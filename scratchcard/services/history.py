"""
Card history ledger.

Append-only, in-memory log of every lifecycle transition. The ledger only
observes the lifecycle; it never changes card state. It is volatile and is
cleared only by a process restart.
"""

import logging
from collections.abc import Callable, Iterator

from scratchcard.models.card import HistoryEntry

logger = logging.getLogger(__name__)

HistorySubscriber = Callable[[tuple[HistoryEntry, ...]], None]


class HistoryLedger:
    """
    Append-only history of card transitions.

    Ordering is by insertion, newest first. Entry timestamps are not used
    for ordering because two transitions may share a timestamp.
    """

    def __init__(self) -> None:
        self._entries: list[HistoryEntry] = []
        self._subscribers: list[HistorySubscriber] = []

    def append(self, entry: HistoryEntry) -> None:
        """Add one entry. Never rejects, never touches existing entries."""
        self._entries.append(entry)
        logger.debug(
            "HISTORY_APPEND: state=%s, size=%d",
            entry.state.value,
            len(self._entries),
        )
        if self._subscribers:
            self._notify(self.entries_most_recent_first())

    def entries_most_recent_first(self) -> tuple[HistoryEntry, ...]:
        """Read-only snapshot, newest entry first."""
        return tuple(reversed(self._entries))

    def latest(self) -> HistoryEntry | None:
        return self._entries[-1] if self._entries else None

    def subscribe(self, callback: HistorySubscriber) -> Callable[[], None]:
        """
        Observe the newest-first view after every append.

        Returns:
            A function that removes the subscription (safe to call twice)
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _notify(self, view: tuple[HistoryEntry, ...]) -> None:
        for callback in list(self._subscribers):
            try:
                callback(view)
            except Exception:
                logger.exception("HISTORY_OBSERVER_FAILED: subscriber=%r", callback)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[HistoryEntry]:
        return reversed(self._entries)
