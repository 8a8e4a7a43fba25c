import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from web3.exceptions import TimeExhausted

from token_purchase_service.app.core.errors import ErrorCode, ErrorMessage, bad_request
from token_purchase_service.app.models.transaction import Transaction, TransactionStatus
from token_purchase_service.app.services.chain_service import ChainError, deliver_tokens, is_valid_wallet_address
from token_purchase_service.app.services.stripe_service import CHECKOUT_COMPLETED

logger = logging.getLogger(__name__)

MAX_ERROR_LENGTH = 500
TRANSFER_FAILED_MESSAGE = "Blockchain transfer failed"
CONFIRMATION_TIMEOUT_MESSAGE = "Timed out waiting for transaction confirmation"


class ReconcileOutcome(str, Enum):
    IGNORED = "ignored"
    COMPLETED = "completed"
    FAILED = "failed"
    DUPLICATE = "duplicate"
    UNKNOWN_TRANSACTION = "unknown_transaction"


@dataclass
class CheckoutMetadata:
    transaction_id: str
    wallet_address: str
    token_amount: int


def extract_metadata(event: dict) -> CheckoutMetadata:
    try:
        metadata = event["data"]["object"]["metadata"] or {}
        transaction_id = str(metadata["transactionId"]).strip()
        wallet_address = str(metadata["walletAddress"]).strip()
        token_amount = int(str(metadata["tokenAmount"]).strip())
    except (KeyError, TypeError, ValueError):
        raise bad_request(ErrorCode.INVALID_METADATA, ErrorMessage.INVALID_METADATA)

    if not transaction_id or not wallet_address or token_amount <= 0:
        raise bad_request(ErrorCode.INVALID_METADATA, ErrorMessage.INVALID_METADATA)

    return CheckoutMetadata(transaction_id, wallet_address, token_amount)


def _error_text(exc: Exception) -> str:
    # the row is publicly readable; RPC and driver errors can carry URLs with keys
    if isinstance(exc, ChainError):
        return (str(exc) or exc.__class__.__name__)[:MAX_ERROR_LENGTH]
    if isinstance(exc, TimeExhausted):
        return CONFIRMATION_TIMEOUT_MESSAGE
    return TRANSFER_FAILED_MESSAGE


def claim_transaction(db: Session, transaction_id: str) -> bool:
    """Move a row from pending to processing; False if another delivery already did."""
    updated = (
        db.query(Transaction)
        .filter(
            Transaction.id == transaction_id,
            Transaction.status == TransactionStatus.PENDING.value,
        )
        .update({Transaction.status: TransactionStatus.PROCESSING.value}, synchronize_session=False)
    )
    db.commit()
    return updated == 1


def mark_completed(db: Session, transaction_id: str, tx_hash: str):
    (
        db.query(Transaction)
        .filter(
            Transaction.id == transaction_id,
            Transaction.status == TransactionStatus.PROCESSING.value,
        )
        .update(
            {
                Transaction.status: TransactionStatus.COMPLETED.value,
                Transaction.blockchain_tx_hash: tx_hash,
                Transaction.error_message: None,
                Transaction.completed_at: datetime.now(timezone.utc),
            },
            synchronize_session=False,
        )
    )
    db.commit()


def mark_failed(db: Session, transaction_id: str, message: str):
    (
        db.query(Transaction)
        .filter(
            Transaction.id == transaction_id,
            Transaction.status == TransactionStatus.PROCESSING.value,
        )
        .update(
            {
                Transaction.status: TransactionStatus.FAILED.value,
                Transaction.blockchain_tx_hash: None,
                Transaction.error_message: message[:MAX_ERROR_LENGTH],
            },
            synchronize_session=False,
        )
    )
    db.commit()


def _record_failure(db: Session, transaction_id: str, message: str):
    try:
        mark_failed(db, transaction_id, message)
    except SQLAlchemyError:
        # the gateway still gets a 200; an operator has to pick this row up
        db.rollback()
        logger.exception("Could not mark transaction %s failed (%s)", transaction_id, message)


def reconcile_checkout(db: Session, metadata: CheckoutMetadata, chain_factory: Callable) -> ReconcileOutcome:
    tid = metadata.transaction_id

    if not claim_transaction(db, tid):
        exists = db.query(Transaction.id).filter_by(id=tid).first()
        if exists:
            logger.warning("Transaction %s is no longer pending, skipping duplicate delivery", tid)
            return ReconcileOutcome.DUPLICATE
        logger.warning("Webhook references unknown transaction %s", tid)
        return ReconcileOutcome.UNKNOWN_TRANSACTION

    logger.info("Transaction %s processing: %s tokens to %s", tid, metadata.token_amount, metadata.wallet_address)

    if not is_valid_wallet_address(metadata.wallet_address):
        logger.warning("Transaction %s has invalid wallet address %r", tid, metadata.wallet_address)
        _record_failure(db, tid, "Invalid wallet address")
        return ReconcileOutcome.FAILED

    try:
        chain = chain_factory()
        result = deliver_tokens(chain, metadata.wallet_address, metadata.token_amount)
    except Exception as e:
        logger.exception("Token delivery failed for transaction %s", tid)
        _record_failure(db, tid, _error_text(e))
        return ReconcileOutcome.FAILED

    try:
        mark_completed(db, tid, result.tx_hash)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Transfer %s confirmed but transaction %s could not be completed", result.tx_hash, tid)
        _record_failure(
            db, tid, f"Transfer {result.tx_hash} confirmed but status update failed"
        )
        return ReconcileOutcome.FAILED

    logger.info("Transaction %s completed by %s: %s", tid, result.mode.value, result.tx_hash)
    return ReconcileOutcome.COMPLETED


def handle_event(db: Session, event: dict, chain_factory: Callable) -> ReconcileOutcome:
    event_type = event.get("type")
    if event_type != CHECKOUT_COMPLETED:
        logger.info("Ignoring Stripe event %s (%s)", event.get("id"), event_type)
        return ReconcileOutcome.IGNORED

    metadata = extract_metadata(event)
    return reconcile_checkout(db, metadata, chain_factory)
