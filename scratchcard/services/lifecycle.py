"""
Scratch card lifecycle.

Owns the single current card and enacts its transitions:

    UNSCRATCHED --scratch--> SCRATCHED --activate--> ACTIVATED

Scratching is legal from any state and always produces a new card with a
fresh code. A scratch cancelled before its delay elapses records a
CANCELLED history entry and leaves the card untouched.

CONCURRENCY:
Everything runs on one asyncio event loop. Card, error and ledger writes
happen synchronously between awaits, so each transition is atomic without
locks. At most one activation may be outstanding; a second one is
rejected. An activation whose card was replaced, or whose lifecycle was
closed, while the verifier was working is discarded.
"""

import asyncio
import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import datetime

from scratchcard.models.card import Card, CardState, HistoryEntry, utc_now
from scratchcard.models.failure import (
    ActivationError,
    ActivationInProgressError,
    CardAlreadyActivatedError,
    MissingCodeError,
    TransportError,
)
from scratchcard.services.history import HistoryLedger
from scratchcard.services.observable import ObservableValue
from scratchcard.services.verifier import (
    ACTIVATION_THRESHOLD,
    ActivationVerifier,
    check_activation_threshold,
)

logger = logging.getLogger(__name__)

SCRATCH_DELAY_SECONDS = 2.0


def generate_code() -> str:
    """New globally unique card code."""
    return str(uuid.uuid4())


@dataclass(frozen=True)
class ActivationResult:
    """
    Outcome of one activate() call.

    Attributes:
        card: The current card after the call
        error: The failure, if activation did not succeed
        discarded: True if the verifier answered after the card was replaced
            or the lifecycle was closed; nothing was applied
    """

    card: Card
    error: ActivationError | None = None
    discarded: bool = False

    @property
    def succeeded(self) -> bool:
        return self.error is None and not self.discarded


class ScratchHandle:
    """
    Handle to one pending scratch.

    cancel() before the delay elapses turns the outcome into CANCELLED.
    Once the scratch has resolved, cancel() is a no-op.
    """

    def __init__(self, task: "asyncio.Task[Card]"):
        self._task = task

    def cancel(self) -> bool:
        """
        Request cancellation.

        Returns:
            True if the scratch was still pending and will be cancelled
        """
        if self._task.done():
            return False
        return self._task.cancel()

    def done(self) -> bool:
        return self._task.done()

    @property
    def cancelled(self) -> bool:
        return self._task.cancelled()

    async def wait(self) -> Card | None:
        """
        Wait for the scratch to settle.

        Waiting never cancels the scratch, even if the waiter is cancelled.

        Returns:
            The scratched card, or None if the scratch was cancelled
        """
        await asyncio.wait({self._task})
        if self._task.cancelled():
            return None
        return self._task.result()


class CardLifecycle:
    """
    State holder for the current scratch card.

    Construct one instance and pass it to whatever consumes it. Observable
    state for presentation layers: card, error_message, is_loading and
    history.

    Args:
        verifier: Remote activation check
        history: Ledger receiving one entry per transition
        scratch_delay: Simulated scratch duration in seconds
        threshold: Activation succeeds only for versions above this
        clock: Source of timestamps
        code_factory: Source of new card codes
    """

    def __init__(
        self,
        verifier: ActivationVerifier,
        history: HistoryLedger | None = None,
        scratch_delay: float = SCRATCH_DELAY_SECONDS,
        threshold: int = ACTIVATION_THRESHOLD,
        clock: Callable[[], datetime] = utc_now,
        code_factory: Callable[[], str] = generate_code,
    ):
        self._verifier = verifier
        self.history = history if history is not None else HistoryLedger()
        self.scratch_delay = scratch_delay
        self.threshold = threshold
        self._clock = clock
        self._code_factory = code_factory

        self.card: ObservableValue[Card] = ObservableValue(Card(timestamp=clock()))
        self.error_message: ObservableValue[str | None] = ObservableValue(None)
        self.is_loading: ObservableValue[bool] = ObservableValue(False)

        self._pending_scratches: set[ScratchHandle] = set()
        self._activation_pending = False
        self._closed = False

    @property
    def current_card(self) -> Card:
        return self.card.value

    @property
    def pending_scratch_count(self) -> int:
        return len(self._pending_scratches)

    @property
    def closed(self) -> bool:
        return self._closed

    # =========================================================================
    # SCRATCH
    # =========================================================================

    def scratch(self) -> ScratchHandle:
        """
        Start scratching the card.

        Must be called while an event loop is running. After scratch_delay
        the card is replaced with a SCRATCHED card carrying a new code.

        Returns:
            Handle used to cancel or await the scratch

        Raises:
            RuntimeError: If the lifecycle is closed
        """
        if self._closed:
            raise RuntimeError("Cannot scratch: lifecycle is closed")

        task = asyncio.get_running_loop().create_task(self._run_scratch())
        handle = ScratchHandle(task)
        self._pending_scratches.add(handle)
        task.add_done_callback(lambda t: self._on_scratch_settled(handle, t))

        logger.info(
            "SCRATCH_START: delay=%.2fs, pending=%d",
            self.scratch_delay,
            len(self._pending_scratches),
        )
        return handle

    async def _run_scratch(self) -> Card:
        await asyncio.sleep(self.scratch_delay)

        # No awaits past this point: the new card and its entry land together.
        card = Card(code=self._code_factory(), state=CardState.SCRATCHED, timestamp=self._clock())
        self.card.set(card)
        self.history.append(HistoryEntry.from_card(card))

        logger.info("SCRATCH_DONE: state=%s", card.state.value)
        logger.debug("SCRATCH_CODE: code=%s", card.code)
        return card

    def _on_scratch_settled(self, handle: ScratchHandle, task: "asyncio.Task[Card]") -> None:
        self._pending_scratches.discard(handle)

        if task.cancelled():
            # Covers cancellation before the task ever ran.
            self.history.append(HistoryEntry.cancelled(self._clock()))
            logger.info("SCRATCH_CANCELLED: pending=%d", len(self._pending_scratches))
            return

        error = task.exception()
        if error is not None:
            logger.error("SCRATCH_FAILED: %s: %s", type(error).__name__, error)

    def cancel_pending_scratches(self) -> int:
        """
        Cancel every scratch that has not resolved yet.

        Returns:
            Number of scratches cancelled
        """
        return sum(1 for handle in list(self._pending_scratches) if handle.cancel())

    # =========================================================================
    # ACTIVATE
    # =========================================================================

    async def activate(self, on_error: Callable[[str], None] | None = None) -> ActivationResult:
        """
        Activate the current card through the verifier.

        Failures never raise. Their message is stored in error_message, or
        passed to on_error instead when given, and the typed error is
        returned in the result.

        Args:
            on_error: Receives the user-facing failure message

        Returns:
            ActivationResult describing what happened
        """
        card = self.card.value
        report = on_error if on_error is not None else self.error_message.set

        try:
            code = self._activatable_code(card)
        except ActivationError as e:
            logger.warning("ACTIVATION_REJECTED: kind=%s", e.kind.value)
            report(e.message)
            return ActivationResult(card=card, error=e)

        self._activation_pending = True
        self.is_loading.set(True)
        logger.info("ACTIVATION_START")

        try:
            failure = await self._verify(code)

            if self._closed or self.card.value is not card:
                logger.warning(
                    "ACTIVATION_DISCARDED: closed=%s, card_replaced=%s",
                    self._closed,
                    self.card.value is not card,
                )
                return ActivationResult(card=self.card.value, discarded=True)

            if failure is not None:
                logger.warning(
                    "ACTIVATION_FAILED: kind=%s, detail=%s",
                    failure.kind.value,
                    failure.detail,
                )
                report(failure.message)
                return ActivationResult(card=card, error=failure)

            activated = replace(card, state=CardState.ACTIVATED, timestamp=self._clock())
            self.card.set(activated)
            self.error_message.set(None)
            self.history.append(HistoryEntry.from_card(activated))

            logger.info("ACTIVATION_SUCCESS")
            return ActivationResult(card=activated)
        finally:
            self._activation_pending = False
            self.is_loading.set(False)

    def _activatable_code(self, card: Card) -> str:
        """
        Return the code to verify for this card.

        Raises:
            MissingCodeError: If the card has no code
            CardAlreadyActivatedError: If the card is already activated
            ActivationInProgressError: If another activation is in flight
        """
        if not card.code:
            raise MissingCodeError()
        if card.state is CardState.ACTIVATED:
            raise CardAlreadyActivatedError(card.code)
        if self._activation_pending:
            raise ActivationInProgressError()
        return card.code

    async def _verify(self, code: str) -> ActivationError | None:
        """Run the verifier and the decision rule; return the failure if any."""
        try:
            version = await self._verifier.verify(code)
            check_activation_threshold(version, self.threshold)
        except ActivationError as e:
            return e
        except Exception as e:
            logger.exception("VERIFIER_UNEXPECTED_ERROR")
            return TransportError(detail=f"{type(e).__name__}: {e}")
        return None

    # =========================================================================
    # ERRORS AND SHUTDOWN
    # =========================================================================

    def clear_error(self) -> None:
        """Dismiss the current failure message."""
        self.error_message.set(None)

    async def aclose(self) -> None:
        """
        Tear down the lifecycle.

        Pending scratches are cancelled (each records CANCELLED) and any
        in-flight activation result will be discarded.
        """
        self._closed = True
        handles = list(self._pending_scratches)
        for handle in handles:
            handle.cancel()
        for handle in handles:
            await handle.wait()
        logger.info("LIFECYCLE_CLOSED: cancelled_scratches=%d", len(handles))
