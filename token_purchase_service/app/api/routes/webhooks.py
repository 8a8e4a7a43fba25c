import logging

import stripe
from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from token_purchase_service.app.api.deps import get_chain_factory
from token_purchase_service.app.core.config import Settings, get_settings
from token_purchase_service.app.core.errors import ErrorCode, ErrorMessage, bad_request, server_misconfigured
from token_purchase_service.app.db.session import get_db
from token_purchase_service.app.services.reconciler import handle_event
from token_purchase_service.app.services.stripe_service import construct_event

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])


@router.post("/stripe")
async def stripe_webhook(
    request: Request,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    chain_factory=Depends(get_chain_factory),
):
    if not settings.STRIPE_WEBHOOK_SECRET:
        raise server_misconfigured(ErrorMessage.WEBHOOK_NOT_CONFIGURED)

    sig_header = request.headers.get("stripe-signature")
    if not sig_header:
        raise bad_request(ErrorCode.SIGNATURE_MISSING, ErrorMessage.SIGNATURE_MISSING)

    payload = await request.body()

    try:
        event = construct_event(payload, sig_header, settings.STRIPE_WEBHOOK_SECRET)
    except stripe.SignatureVerificationError as e:
        logger.warning("Webhook signature verification failed: %s", e)
        raise bad_request(ErrorCode.SIGNATURE_INVALID, ErrorMessage.SIGNATURE_INVALID)
    except ValueError:
        raise bad_request(ErrorCode.INVALID_PAYLOAD, ErrorMessage.INVALID_PAYLOAD)

    # chain calls block until the receipt arrives
    outcome = await run_in_threadpool(handle_event, db, event, chain_factory)
    logger.info("Stripe event %s handled: %s", event.get("id"), outcome.value)

    return {"received": True}
