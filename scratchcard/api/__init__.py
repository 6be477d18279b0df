from scratchcard.api.card import router as card_router
from scratchcard.api.health import router as health_router

__all__ = [
    "card_router",
    "health_router",
]
