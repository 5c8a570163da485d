"""Wave webhook endpoint: receives checkout results and reconciles the ledger."""

import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from exampremium.billing.exceptions import BillingError, WebhookProcessingError
from exampremium.billing.reconciler import handle_wave_webhook
from exampremium.billing.signature import WAVE_SIGNATURE_HEADER
from exampremium.database import get_db
from exampremium.schemas.billing import ReconciliationResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/webhooks", tags=["webhooks"])


@router.post(
    "/wave",
    response_model=ReconciliationResponse,
    response_model_exclude_none=True,
)
async def wave_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> ReconciliationResponse:
    """Receive and process a Wave webhook delivery.

    Any non-2xx answer makes Wave retry the delivery, which the reconciler
    handles idempotently.
    """
    # Raw bytes: the signature covers the exact body
    payload = await request.body()
    sig_header = request.headers.get(WAVE_SIGNATURE_HEADER, "")

    try:
        result = await handle_wave_webhook(db, payload, sig_header)
        await db.commit()
    except BillingError:
        await db.rollback()
        raise
    except Exception as e:
        await db.rollback()
        logger.exception("Error processing Wave webhook")
        raise WebhookProcessingError("Webhook processing failed") from e

    return ReconciliationResponse.model_validate(result)
