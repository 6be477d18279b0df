"""
Card API endpoints.

HTTP surface over the card lifecycle: read the current card, the history
and the error message; scratch, cancel, activate and dismiss errors.
"""

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel

from scratchcard.models.card import Card, CardState, HistoryEntry
from scratchcard.models.failure import ApiResponse
from scratchcard.services.lifecycle import CardLifecycle

router = APIRouter(prefix="/card", tags=["card"])


def get_lifecycle(request: Request) -> CardLifecycle:
    """Lifecycle created by the application lifespan."""
    lifecycle: CardLifecycle | None = getattr(request.app.state, "lifecycle", None)
    if lifecycle is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Card lifecycle is not initialized",
        )
    return lifecycle


LifecycleDep = Annotated[CardLifecycle, Depends(get_lifecycle)]


class CardResponse(BaseModel):
    """Current card with UI feedback state."""

    code: str | None
    state: CardState
    timestamp: datetime
    is_loading: bool = False
    error_message: str | None = None

    @classmethod
    def from_lifecycle(cls, lifecycle: CardLifecycle, card: Card | None = None) -> "CardResponse":
        card = card if card is not None else lifecycle.current_card
        return cls(
            code=card.code,
            state=card.state,
            timestamp=card.timestamp,
            is_loading=lifecycle.is_loading.value,
            error_message=lifecycle.error_message.value,
        )


class HistoryEntryResponse(BaseModel):
    """A single history entry."""

    code: str | None
    display_code: str
    state: CardState
    timestamp: datetime
    display_time: str

    @classmethod
    def from_entry(cls, entry: HistoryEntry) -> "HistoryEntryResponse":
        return cls(
            code=entry.code,
            display_code=entry.display_code,
            state=entry.state,
            timestamp=entry.timestamp,
            display_time=entry.display_time,
        )


class HistoryResponse(BaseModel):
    """History entries, newest first."""

    entries: list[HistoryEntryResponse]
    count: int


class ScratchResponse(BaseModel):
    """Response for scratch start and cancel requests."""

    pending: int
    cancelled: int = 0


@router.get("", response_model=CardResponse)
async def get_card(lifecycle: LifecycleDep) -> CardResponse:
    """Current card, loading flag and error message."""
    return CardResponse.from_lifecycle(lifecycle)


@router.get("/history", response_model=HistoryResponse)
async def get_history(lifecycle: LifecycleDep) -> HistoryResponse:
    """All recorded transitions, newest first."""
    entries = [HistoryEntryResponse.from_entry(e) for e in lifecycle.history]
    return HistoryResponse(entries=entries, count=len(entries))


@router.post(
    "/scratch",
    response_model=ScratchResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def start_scratch(lifecycle: LifecycleDep) -> ScratchResponse:
    """
    Start scratching the card.

    Returns immediately; the card changes once the scratch delay elapses.
    """
    lifecycle.scratch()
    return ScratchResponse(pending=lifecycle.pending_scratch_count)


@router.post("/scratch/cancel", response_model=ScratchResponse)
async def cancel_scratch(lifecycle: LifecycleDep) -> ScratchResponse:
    """Cancel every scratch that has not finished yet."""
    cancelled = lifecycle.cancel_pending_scratches()
    return ScratchResponse(pending=lifecycle.pending_scratch_count, cancelled=cancelled)


@router.post("/activate", response_model=ApiResponse[CardResponse])
async def activate_card(lifecycle: LifecycleDep) -> ApiResponse[CardResponse]:
    """
    Activate the current card.

    Failures are not HTTP errors: the envelope reports a known failure and
    carries the unchanged card.
    """
    result = await lifecycle.activate()

    if result.discarded:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Card changed while activation was in progress",
        )

    card = CardResponse.from_lifecycle(lifecycle, result.card)

    if result.error is not None:
        return ApiResponse[CardResponse].known_failure(result.error, data=card)

    return ApiResponse[CardResponse].success(card)


@router.delete("/error", status_code=status.HTTP_204_NO_CONTENT)
async def clear_error(lifecycle: LifecycleDep) -> None:
    """Dismiss the current error message."""
    lifecycle.clear_error()
