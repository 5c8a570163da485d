"""Billing error taxonomy.

Every error carries the HTTP status and the short machine-readable code that
the API exception handler renders as ``{"error": code}``.
"""


class BillingError(Exception):
    """Base class for payment and entitlement errors."""

    status_code: int = 500
    code: str = "billing-error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.code)
        self.message = message or self.code


class ConfigurationError(BillingError):
    """A required credential or secret is missing. Never retried."""

    status_code = 503
    code = "payment-provider-not-configured"


class ProviderError(BillingError):
    """The payment provider answered with a non-success response or was unreachable."""

    status_code = 502
    code = "payment-provider-error"

    def __init__(self, provider_status: int | None, message: str) -> None:
        super().__init__(f"Wave API error: {provider_status}: {message}")
        self.provider_status = provider_status
        self.provider_message = message


class SignatureInvalid(BillingError):
    status_code = 400
    code = "invalid-signature"


class InvalidPayload(BillingError):
    status_code = 400
    code = "invalid-payload"


class PaymentNotVerified(BillingError):
    """The provider's own view of the session contradicts a success webhook."""

    status_code = 400
    code = "payment-not-verified"


class NotFoundError(BillingError):
    status_code = 404
    code = "subscription-not-found"


class PersistenceError(BillingError):
    """A ledger read or write failed. Fatal for the current delivery."""

    status_code = 500
    code = "persistence-error"


class WebhookProcessingError(BillingError):
    """Unexpected failure while applying a webhook; Wave will redeliver."""

    status_code = 500
    code = "webhook-processing-failed"
