import logging
import stripe
from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.services import stripe_service
from app.services.billing_service import process_event

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/billing", tags=["Billing Webhook"])


@router.post("/webhook")
async def stripe_webhook(
    request: Request,
    stripe_signature: str = Header(None),
    db: Session = Depends(get_db)
):
    """
    Stripe webhook ingress.

    400 when the signature is missing or invalid. 500 when processing
    fails, so Stripe redelivers; sync is idempotent by re-fetch. Event
    types we do not handle are acknowledged with 200.
    """
    if not stripe_signature:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Signature is missing")

    payload = await request.body()

    try:
        event = stripe_service.verify_webhook(payload, stripe_signature)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Webhook verification failed: {str(e)}"
        )

    # Stripe re-fetch and DB writes block; keep them off the event loop
    try:
        handled = await run_in_threadpool(process_event, db, event)
    except (stripe.error.StripeError, SQLAlchemyError, ValueError, KeyError) as e:
        logger.exception(f"Webhook processing failed: event_id={event['id']}, type={event['type']}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Webhook processing failed: {type(e).__name__}"
        )

    return {"status": "success", "handled": handled}
