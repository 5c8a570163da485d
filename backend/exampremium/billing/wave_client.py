"""Async Wave Checkout API wrapper."""

import logging

import httpx
from pydantic import ValidationError

from exampremium.billing.exceptions import ConfigurationError, ProviderError
from exampremium.billing.plans import Plan, get_plan
from exampremium.config import settings
from exampremium.schemas.wave import WaveCheckoutSession

logger = logging.getLogger(__name__)


def is_wave_configured() -> bool:
    return bool(settings.wave_api_key)


def get_wave_client(timeout: float | None = None) -> httpx.AsyncClient:
    """Create an authenticated HTTP client for the Wave API."""
    if not settings.wave_api_key:
        raise ConfigurationError("WAVE_API_KEY is not configured")
    return httpx.AsyncClient(
        base_url=settings.wave_api_url,
        headers={"Authorization": f"Bearer {settings.wave_api_key}"},
        timeout=timeout or settings.wave_timeout_seconds,
    )


async def _send(client: httpx.AsyncClient, method: str, url: str, **kwargs) -> WaveCheckoutSession:
    """Perform one request (no retry) and parse the checkout session it returns."""
    try:
        response = await client.request(method, url, **kwargs)
    except httpx.HTTPError as e:
        logger.error("Wave request %s %s failed: %s", method, url, e)
        raise ProviderError(None, str(e)) from e

    if response.is_error:
        logger.error("Wave API error on %s %s: %s %s", method, url, response.status_code, response.text)
        raise ProviderError(response.status_code, response.text)

    try:
        return WaveCheckoutSession.model_validate(response.json())
    except (ValueError, ValidationError) as e:
        logger.error("Unexpected Wave response for %s %s: %s", method, url, response.text)
        raise ProviderError(response.status_code, "Unexpected response body") from e


async def create_checkout_session(plan: Plan, client_reference: str) -> WaveCheckoutSession:
    """Create a Wave checkout session for a premium plan.

    ``client_reference`` is chosen by the caller so the session can be tied
    back to its pending ledger row. This call is never retried here: a retry
    could open a second payable session for the same purchase.
    """
    details = get_plan(plan)
    payload = {
        "amount": details.amount,
        "currency": details.currency,
        "client_reference": client_reference,
        "success_url": f"{settings.frontend_url}/pricing/success?session_id={{checkout_session_id}}",
        "error_url": f"{settings.frontend_url}/pricing?error=payment_failed",
    }
    logger.info("Creating Wave checkout session for plan %s (ref %s)", plan, client_reference)
    async with get_wave_client() as client:
        session = await _send(client, "POST", "/checkout/sessions", json=payload)
    if not session.wave_launch_url:
        logger.error("Wave checkout session %s has no wave_launch_url", session.id)
        raise ProviderError(None, f"Checkout session {session.id} has no wave_launch_url")
    logger.info("Created Wave checkout session %s for ref %s", session.id, client_reference)
    return session


async def get_checkout_session(session_id: str) -> WaveCheckoutSession:
    """Retrieve a Wave checkout session by ID."""
    async with get_wave_client(timeout=settings.wave_verify_timeout_seconds) as client:
        return await _send(client, "GET", f"/checkout/sessions/{session_id}")
