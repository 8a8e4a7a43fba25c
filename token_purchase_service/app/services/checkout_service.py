import logging

import stripe
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from token_purchase_service.app.core.config import Settings
from token_purchase_service.app.core.errors import (
    ErrorCode,
    ErrorMessage,
    bad_gateway,
    bad_request,
    conflict,
    not_found,
    server_misconfigured,
)
from token_purchase_service.app.core.pricing import amount_usd_for, is_allowed_amount
from token_purchase_service.app.models.transaction import Transaction, TransactionStatus
from token_purchase_service.app.services import stripe_service

logger = logging.getLogger(__name__)


def _existing_pending_transaction(db: Session, transaction_id: str, wallet_address: str, token_amount: int):
    txn = db.query(Transaction).filter_by(id=transaction_id).first()
    if not txn:
        raise not_found(ErrorCode.TRANSACTION_NOT_FOUND, ErrorMessage.TRANSACTION_NOT_FOUND)

    if txn.status != TransactionStatus.PENDING.value or txn.stripe_session_id:
        raise conflict(ErrorCode.TRANSACTION_NOT_PENDING, ErrorMessage.TRANSACTION_NOT_PENDING)

    if txn.wallet_address != wallet_address or txn.token_amount != token_amount:
        raise bad_request(ErrorCode.TRANSACTION_MISMATCH, ErrorMessage.TRANSACTION_MISMATCH)

    return txn


def initiate_checkout(
    db: Session,
    settings: Settings,
    wallet_address: str,
    token_amount: int,
    transaction_id: str | None = None,
):
    """Create (or reuse) a pending transaction and open a Stripe checkout session for it.

    Returns ``(transaction, session)``. On a gateway failure the row is left
    ``pending`` without a session id and counts as abandoned.
    """
    wallet_address = wallet_address.strip() if isinstance(wallet_address, str) else ""
    if not wallet_address:
        raise bad_request(ErrorCode.WALLET_ADDRESS_REQUIRED, ErrorMessage.WALLET_ADDRESS_REQUIRED)

    if not is_allowed_amount(token_amount):
        raise bad_request(
            ErrorCode.INVALID_TOKEN_AMOUNT,
            ErrorMessage.INVALID_TOKEN_AMOUNT,
            details={"tokenAmount": token_amount},
        )

    if not settings.STRIPE_SECRET_KEY:
        raise server_misconfigured(ErrorMessage.STRIPE_NOT_CONFIGURED)

    if transaction_id:
        txn = _existing_pending_transaction(db, transaction_id, wallet_address, token_amount)
    else:
        txn = Transaction(
            wallet_address=wallet_address,
            token_amount=token_amount,
            amount_usd=amount_usd_for(token_amount),
            status=TransactionStatus.PENDING.value,
        )
        try:
            db.add(txn)
            db.commit()
            db.refresh(txn)
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Could not create transaction for %s", wallet_address)
            raise bad_gateway()

    try:
        session = stripe_service.create_checkout_session(settings, txn.id, wallet_address, token_amount)
    except stripe.StripeError as e:
        logger.error("Stripe checkout session failed for transaction %s: %s", txn.id, e)
        raise bad_gateway()

    try:
        txn.stripe_session_id = session.id
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Could not store session %s on transaction %s", session.id, txn.id)
        raise bad_gateway()

    return txn, session
