from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from token_purchase_service.app.core.config import Settings, get_settings
from token_purchase_service.app.core.pricing import PRICE_PER_TOKEN_USD, TOKEN_OPTIONS, amount_usd_for
from token_purchase_service.app.core.rate_limit import checkout_rate_limit, limiter
from token_purchase_service.app.db.session import get_db
from token_purchase_service.app.schemas.checkout import (
    CheckoutSessionRequest,
    CheckoutSessionResponse,
    TokenOptionsResponse,
)
from token_purchase_service.app.services.checkout_service import initiate_checkout

router = APIRouter(prefix="/api/checkout", tags=["Checkout"])


@router.get("/options", response_model=TokenOptionsResponse)
def token_options(settings: Settings = Depends(get_settings)):
    return {
        "tokenName": settings.TOKEN_NAME,
        "pricePerTokenUsd": PRICE_PER_TOKEN_USD,
        "options": [
            {"tokenAmount": amount, "amountUsd": amount_usd_for(amount)}
            for amount in TOKEN_OPTIONS
        ],
    }


@router.post("/session", response_model=CheckoutSessionResponse)
@limiter.limit(checkout_rate_limit)
def create_checkout_session(
    request: Request,
    data: CheckoutSessionRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    txn, session = initiate_checkout(
        db,
        settings,
        wallet_address=data.walletAddress,
        token_amount=data.tokenAmount,
        transaction_id=data.transactionId,
    )
    return {
        "sessionId": session.id,
        "url": getattr(session, "url", None),
        "transactionId": txn.id,
    }
