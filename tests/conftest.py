import asyncio

import pytest

from scratchcard.services.history import HistoryLedger
from scratchcard.services.lifecycle import CardLifecycle

# Short enough to keep tests fast
FAST_SCRATCH_DELAY = 0.01
# Never elapses within a test
SLOW_SCRATCH_DELAY = 30.0


class FakeActivationVerifier:
    """
    Verifier double returning a configured version or raising an error.

    Set `gate` to an asyncio.Event to hold verification until it is set.
    """

    def __init__(self, android_value: int = 0):
        self.android_value = android_value
        self.error: Exception | None = None
        self.gate: asyncio.Event | None = None
        self.calls: list[str] = []

    async def verify(self, code: str) -> int:
        self.calls.append(code)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.android_value


@pytest.fixture
def verifier() -> FakeActivationVerifier:
    return FakeActivationVerifier()


@pytest.fixture
def ledger() -> HistoryLedger:
    return HistoryLedger()


@pytest.fixture
async def lifecycle(verifier: FakeActivationVerifier, ledger: HistoryLedger):
    """Lifecycle with a fast scratch delay, closed after the test."""
    lc = CardLifecycle(verifier, history=ledger, scratch_delay=FAST_SCRATCH_DELAY)
    yield lc
    await lc.aclose()


@pytest.fixture
async def slow_lifecycle(verifier: FakeActivationVerifier, ledger: HistoryLedger):
    """Lifecycle whose scratch never finishes on its own during a test."""
    lc = CardLifecycle(verifier, history=ledger, scratch_delay=SLOW_SCRATCH_DELAY)
    yield lc
    await lc.aclose()


@pytest.fixture
async def scratched(lifecycle: CardLifecycle) -> CardLifecycle:
    """Lifecycle whose card has already been scratched."""
    card = await lifecycle.scratch().wait()
    assert card is not None
    return lifecycle
