import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from importlib.metadata import version as pkg_version

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from scratchcard.api import card_router, health_router
from scratchcard.config import Settings, settings
from scratchcard.services.history import HistoryLedger
from scratchcard.services.lifecycle import CardLifecycle
from scratchcard.services.verifier import HttpActivationVerifier

logger = logging.getLogger(__name__)


def build_lifecycle(client: httpx.AsyncClient, config: Settings = settings) -> CardLifecycle:
    """Wire a lifecycle to the remote verifier using the given settings."""
    verifier = HttpActivationVerifier(
        client,
        base_url=config.activation_base_url,
        version_field=config.activation_version_field,
        timeout=config.activation_timeout_seconds,
    )
    return CardLifecycle(
        verifier,
        history=HistoryLedger(),
        scratch_delay=config.scratch_delay_seconds,
        threshold=config.activation_threshold,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    async with httpx.AsyncClient(follow_redirects=True) as client:
        app.state.lifecycle = build_lifecycle(client)
        logger.info("Card lifecycle ready (activation endpoint %s)", settings.activation_base_url)
        try:
            yield
        finally:
            await app.state.lifecycle.aclose()
            app.state.lifecycle = None


app = FastAPI(
    title=settings.app_name,
    version=pkg_version("scratchcard"),
    debug=settings.debug,
    lifespan=lifespan,
)

app.include_router(card_router)
app.include_router(health_router)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Tighten in production
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)
