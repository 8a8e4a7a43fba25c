import json
import logging

import stripe

from token_purchase_service.app.core.config import Settings
from token_purchase_service.app.core.pricing import unit_amount_cents

logger = logging.getLogger(__name__)

CHECKOUT_COMPLETED = "checkout.session.completed"


def configure_stripe(settings: Settings) -> None:
    """Install an HTTP client with an explicit timeout for every Stripe call."""
    stripe.default_http_client = stripe.RequestsClient(timeout=settings.STRIPE_TIMEOUT_SECONDS)


def create_checkout_session(
    settings: Settings,
    transaction_id: str,
    wallet_address: str,
    token_amount: int,
):
    base_url = settings.frontend_base_url

    session = stripe.checkout.Session.create(
        api_key=settings.STRIPE_SECRET_KEY,
        mode="payment",
        payment_method_types=["card"],
        line_items=[{
            "price_data": {
                "currency": "usd",
                "product_data": {"name": settings.TOKEN_NAME},
                "unit_amount": unit_amount_cents(),
            },
            "quantity": token_amount,
        }],
        success_url=f"{base_url}/success?session_id={{CHECKOUT_SESSION_ID}}",
        cancel_url=f"{base_url}/purchase/{wallet_address}",
        metadata={
            "transactionId": transaction_id,
            "walletAddress": wallet_address,
            "tokenAmount": str(token_amount),
        },
    )
    logger.info("Created checkout session %s for transaction %s", session.id, transaction_id)
    return session


def construct_event(payload: bytes, sig_header: str, secret: str) -> dict:
    """Verify the signature header and decode the event body.

    Raises ``stripe.SignatureVerificationError`` for a bad signature and
    ``ValueError`` for a body that is not UTF-8 JSON.
    """
    text = payload.decode("utf-8")
    stripe.WebhookSignature.verify_header(
        text, sig_header, secret, tolerance=stripe.Webhook.DEFAULT_TOLERANCE
    )
    event = json.loads(text)
    if not isinstance(event, dict):
        raise ValueError("Event body must be a JSON object")
    return event
