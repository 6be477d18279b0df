from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum


def utc_now() -> datetime:
    return datetime.now(UTC)


class CardState(str, Enum):
    """Lifecycle states of a scratch card."""

    UNSCRATCHED = "UNSCRATCHED"
    SCRATCHED = "SCRATCHED"
    ACTIVATED = "ACTIVATED"
    CANCELLED = "CANCELLED"


@dataclass(frozen=True, slots=True)
class Card:
    """
    The current scratch card.

    Every transition produces a new Card; instances are never mutated.

    Attributes:
        code: Opaque code revealed by scratching (None while unscratched)
        state: Lifecycle state
        timestamp: When this value was produced (UTC)
    """

    code: str | None = None
    state: CardState = CardState.UNSCRATCHED
    timestamp: datetime = field(default_factory=utc_now)

    @property
    def has_code(self) -> bool:
        return bool(self.code)


@dataclass(frozen=True, slots=True)
class HistoryEntry:
    """
    Point-in-time snapshot of one completed transition.

    Attributes:
        code: Card code at the time of the transition (None for a cancelled scratch)
        state: State reached by the transition
        timestamp: When the entry was created (UTC)
    """

    code: str | None
    state: CardState
    timestamp: datetime = field(default_factory=utc_now)

    @classmethod
    def from_card(cls, card: Card) -> "HistoryEntry":
        return cls(code=card.code, state=card.state, timestamp=card.timestamp)

    @classmethod
    def cancelled(cls, timestamp: datetime | None = None) -> "HistoryEntry":
        """Entry for a scratch attempt that never completed."""
        return cls(code=None, state=CardState.CANCELLED, timestamp=timestamp or utc_now())

    @property
    def display_code(self) -> str:
        return self.code if self.code else "(no code)"

    @property
    def display_time(self) -> str:
        return self.timestamp.strftime("%H:%M:%S")
