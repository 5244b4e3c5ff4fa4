"""
Stripe Webhook Endpoint

Verifies the Stripe signature and applies the event synchronously. Stripe
redelivers on any non-2xx answer, which is safe because every handler is
idempotent per Stripe object id.
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from covetalks.dependencies import get_billing_service
from covetalks.services.billing_service import BillingService
from covetalks.utils.exceptions import CoveTalksException, InvalidSignature, ValidationError
from covetalks.utils.logging_config import get_correlation_id, get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/api/stripe", tags=["webhook"])


@router.post("/webhook")
async def stripe_webhook(
    request: Request,
    billing: BillingService = Depends(get_billing_service),
):
    """
    Stripe webhook endpoint.

    Returns {"received": true} once the event is applied; 400 when the
    signature or its header is missing or invalid; 500 when applying the
    event failed, so Stripe retries.
    """
    correlation_id = get_correlation_id()

    try:
        payload, signature = await billing.stripe_service.extract_webhook_data(request)
        result = await billing.handle_webhook(payload, signature)

    except (InvalidSignature, ValidationError) as e:
        logger.error(
            "Webhook rejected",
            extra={"error": e.to_dict(), "correlation_id": correlation_id},
        )
        return JSONResponse(status_code=400, content=e.to_response())

    except CoveTalksException as e:
        logger.error(
            f"Webhook processing failed: {e.message}",
            extra={"error": e.to_dict(), "correlation_id": correlation_id},
        )
        return JSONResponse(
            status_code=500,
            content={"error": "Webhook processing failed", "code": e.error_code},
        )

    except Exception as e:
        logger.error(
            f"Unexpected error processing webhook: {e}",
            extra={"error": str(e), "correlation_id": correlation_id},
            exc_info=True,
        )
        return JSONResponse(
            status_code=500,
            content={"error": "Webhook processing failed", "code": "INTERNAL_ERROR"},
        )

    logger.info(
        "Webhook processed",
        extra={
            "event_id": result.get("event_id"),
            "event_type": result.get("event_type"),
            "status": result.get("status"),
        },
    )
    return {"received": True}
