"""Tests for card API endpoints."""

import asyncio

import pytest
from httpx import ASGITransport, AsyncClient

from scratchcard.api.card import get_lifecycle
from scratchcard.main import app
from scratchcard.services.lifecycle import CardLifecycle


async def wait_for_scratches(lifecycle: CardLifecycle) -> None:
    """Poll until no scratch is pending."""
    for _ in range(200):
        if lifecycle.pending_scratch_count == 0:
            return
        await asyncio.sleep(0.01)
    raise AssertionError("scratch did not settle")


@pytest.fixture
async def client(lifecycle: CardLifecycle):
    """Provide an async test client bound to the test lifecycle."""
    app.dependency_overrides[get_lifecycle] = lambda: lifecycle

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
async def slow_client(slow_lifecycle: CardLifecycle):
    """Test client whose scratches never finish on their own."""
    app.dependency_overrides[get_lifecycle] = lambda: slow_lifecycle

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


class TestGetCard:
    async def test_initial_card(self, client: AsyncClient) -> None:
        """A fresh card is unscratched with no error."""
        response = await client.get("/card")

        assert response.status_code == 200
        data = response.json()
        assert data["state"] == "UNSCRATCHED"
        assert data["code"] is None
        assert data["is_loading"] is False
        assert data["error_message"] is None

    async def test_uninitialized_lifecycle_returns_503(self) -> None:
        """Without a lifecycle the endpoints are unavailable."""
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/card")

        assert response.status_code == 503


class TestScratchEndpoints:
    async def test_scratch_is_accepted(
        self, client: AsyncClient, lifecycle: CardLifecycle
    ) -> None:
        """Scratching returns immediately and completes in the background."""
        response = await client.post("/card/scratch")

        assert response.status_code == 202
        assert response.json()["pending"] == 1

        await wait_for_scratches(lifecycle)
        data = (await client.get("/card")).json()
        assert data["state"] == "SCRATCHED"
        assert data["code"]

    async def test_cancel_scratch(
        self, slow_client: AsyncClient, slow_lifecycle: CardLifecycle
    ) -> None:
        """Cancelling records CANCELLED and leaves the card unscratched."""
        await slow_client.post("/card/scratch")

        response = await slow_client.post("/card/scratch/cancel")

        assert response.status_code == 200
        assert response.json()["cancelled"] == 1

        await wait_for_scratches(slow_lifecycle)
        history = (await slow_client.get("/card/history")).json()
        assert history["count"] == 1
        assert history["entries"][0]["state"] == "CANCELLED"
        assert history["entries"][0]["display_code"] == "(no code)"
        assert (await slow_client.get("/card")).json()["state"] == "UNSCRATCHED"

    async def test_cancel_with_nothing_pending(self, client: AsyncClient) -> None:
        response = await client.post("/card/scratch/cancel")

        assert response.json() == {"pending": 0, "cancelled": 0}


class TestActivateEndpoint:
    async def test_activate_without_code(self, client: AsyncClient) -> None:
        """Activating an unscratched card is a known failure, not an HTTP error."""
        response = await client.post("/card/activate")

        assert response.status_code == 200
        data = response.json()
        assert data["outcome"] == "known_failure"
        assert data["failure"]["kind"] == "missing_code"
        assert data["data"]["state"] == "UNSCRATCHED"

    async def test_activate_success(
        self, client: AsyncClient, lifecycle: CardLifecycle, verifier
    ) -> None:
        """A high version activates the card."""
        verifier.android_value = 287028
        await client.post("/card/scratch")
        await wait_for_scratches(lifecycle)

        response = await client.post("/card/activate")

        data = response.json()
        assert data["outcome"] == "success"
        assert data["failure"] is None
        assert data["data"]["state"] == "ACTIVATED"
        assert data["data"]["code"] == lifecycle.current_card.code

        history = (await client.get("/card/history")).json()
        assert [e["state"] for e in history["entries"]] == ["ACTIVATED", "SCRATCHED"]

    async def test_activate_card_replaced_mid_flight_returns_409(
        self, client: AsyncClient, lifecycle: CardLifecycle, verifier
    ) -> None:
        """A scratch landing while the verifier works discards the activation."""
        verifier.android_value = 287028
        verifier.gate = asyncio.Event()
        await client.post("/card/scratch")
        await wait_for_scratches(lifecycle)
        first_code = lifecycle.current_card.code

        pending = asyncio.create_task(client.post("/card/activate"))
        for _ in range(200):
            if verifier.calls:
                break
            await asyncio.sleep(0.01)
        assert lifecycle.is_loading.value

        await lifecycle.scratch().wait()
        verifier.gate.set()
        response = await pending

        assert response.status_code == 409
        assert response.json()["detail"] == "Card changed while activation was in progress"
        assert verifier.calls == [first_code]

        data = (await client.get("/card")).json()
        assert data["state"] == "SCRATCHED"
        assert data["code"] != first_code
        assert data["is_loading"] is False

    async def test_activate_below_threshold(
        self, client: AsyncClient, lifecycle: CardLifecycle, verifier
    ) -> None:
        """A low version reports the failure and keeps the card scratched."""
        verifier.android_value = 250000
        await client.post("/card/scratch")
        await wait_for_scratches(lifecycle)

        response = await client.post("/card/activate")

        data = response.json()
        assert data["outcome"] == "known_failure"
        assert data["failure"]["kind"] == "threshold_not_met"
        assert data["data"]["state"] == "SCRATCHED"
        assert data["data"]["error_message"] == "Activation failed (version = 250000)."


class TestClearErrorEndpoint:
    async def test_clear_error(
        self, client: AsyncClient, lifecycle: CardLifecycle
    ) -> None:
        """DELETE /card/error dismisses the message."""
        await client.post("/card/activate")
        assert lifecycle.error_message.value is not None

        response = await client.delete("/card/error")

        assert response.status_code == 204
        assert (await client.get("/card")).json()["error_message"] is None

    async def test_clear_error_when_none(self, client: AsyncClient) -> None:
        """Clearing with no error present is harmless."""
        response = await client.delete("/card/error")

        assert response.status_code == 204
        history = (await client.get("/card/history")).json()
        assert history == {"entries": [], "count": 0}
