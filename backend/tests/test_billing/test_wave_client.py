"""Tests for the Wave Checkout API wrapper with a mocked HTTP transport."""

import json
from unittest.mock import patch

import httpx
import pytest

from exampremium.billing.exceptions import ConfigurationError, ProviderError
from exampremium.billing.plans import Plan
from exampremium.billing.wave_client import (
    create_checkout_session,
    get_checkout_session,
    get_wave_client,
    is_wave_configured,
)


def _session_json(session_id: str = "cos-18qq25rgzjq1a", **overrides) -> dict:
    data = {
        "id": session_id,
        "checkout_status": "open",
        "payment_status": "processing",
        "amount": "2500",
        "currency": "XOF",
        "client_reference": "user_MONTHLY_1700000000000",
        "wave_launch_url": f"https://pay.wave.com/c/{session_id}",
        "business_name": "Exams",
        "when_created": "2025-01-01T10:00:00Z",
        "when_expires": "2025-01-01T10:30:00Z",
    }
    data.update(overrides)
    return data


def _patched_client(handler):
    """Patch get_wave_client to return a client backed by ``handler``."""

    def factory(timeout: float | None = None) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            transport=httpx.MockTransport(handler),
            base_url="https://api.wave.test/v1",
        )

    return patch("exampremium.billing.wave_client.get_wave_client", side_effect=factory)


class TestGetWaveClient:
    def test_not_configured_raises(self):
        assert is_wave_configured() is False
        with pytest.raises(ConfigurationError):
            get_wave_client()

    async def test_configured_client(self, wave_api_key):
        assert is_wave_configured() is True
        client = get_wave_client(timeout=3.0)
        try:
            assert client.headers["Authorization"] == f"Bearer {wave_api_key}"
            assert str(client.base_url).startswith("https://api.wave.test/v1")
            assert client.timeout.read == 3.0
        finally:
            await client.aclose()


class TestCreateCheckoutSession:
    async def test_posts_plan_amount_and_reference(self):
        captured: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            captured.append(request)
            return httpx.Response(200, json=_session_json())

        with _patched_client(handler):
            session = await create_checkout_session(Plan.MONTHLY, "user_MONTHLY_1700000000000")

        assert session.id == "cos-18qq25rgzjq1a"
        assert session.wave_launch_url == "https://pay.wave.com/c/cos-18qq25rgzjq1a"

        request = captured[0]
        assert request.method == "POST"
        assert request.url.path == "/v1/checkout/sessions"
        body = json.loads(request.content)
        assert body["amount"] == "2500"
        assert body["currency"] == "XOF"
        assert body["client_reference"] == "user_MONTHLY_1700000000000"
        assert body["success_url"] == (
            "https://exams.test/pricing/success?session_id={checkout_session_id}"
        )
        assert body["error_url"] == "https://exams.test/pricing?error=payment_failed"

    async def test_annual_amount(self):
        captured: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            captured.append(request)
            return httpx.Response(200, json=_session_json(amount=20000))

        with _patched_client(handler):
            session = await create_checkout_session(Plan.ANNUAL, "ref")

        assert json.loads(captured[0].content)["amount"] == "20000"
        assert session.amount == "20000"

    async def test_error_response_raises_provider_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"code": "request-validation-error"})

        with _patched_client(handler):
            with pytest.raises(ProviderError) as exc_info:
                await create_checkout_session(Plan.MONTHLY, "ref")

        assert exc_info.value.provider_status == 400
        assert "request-validation-error" in exc_info.value.provider_message

    async def test_network_failure_raises_provider_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with _patched_client(handler):
            with pytest.raises(ProviderError) as exc_info:
                await create_checkout_session(Plan.MONTHLY, "ref")

        assert exc_info.value.provider_status is None

    async def test_unexpected_body_raises_provider_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>maintenance</html>")

        with _patched_client(handler):
            with pytest.raises(ProviderError):
                await create_checkout_session(Plan.MONTHLY, "ref")

    async def test_missing_launch_url_raises_provider_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=_session_json(wave_launch_url=None))

        with _patched_client(handler):
            with pytest.raises(ProviderError) as exc_info:
                await create_checkout_session(Plan.MONTHLY, "ref")

        assert "wave_launch_url" in exc_info.value.provider_message

    async def test_not_configured(self):
        with pytest.raises(ConfigurationError):
            await create_checkout_session(Plan.MONTHLY, "ref")


class TestGetCheckoutSession:
    async def test_fetches_session(self):
        captured: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            captured.append(request)
            return httpx.Response(
                200,
                json=_session_json(
                    "cos-abc", checkout_status="complete", payment_status="succeeded"
                ),
            )

        with _patched_client(handler):
            session = await get_checkout_session("cos-abc")

        assert captured[0].method == "GET"
        assert captured[0].url.path == "/v1/checkout/sessions/cos-abc"
        assert session.succeeded is True

    async def test_not_found_raises_provider_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, json={"code": "checkout-session-not-found"})

        with _patched_client(handler):
            with pytest.raises(ProviderError) as exc_info:
                await get_checkout_session("cos-missing")

        assert exc_info.value.provider_status == 404
