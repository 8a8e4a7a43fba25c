from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from token_purchase_service.app.core.config import Settings, get_settings
from token_purchase_service.app.core.errors import ErrorCode, ErrorMessage, not_found
from token_purchase_service.app.db.session import get_db
from token_purchase_service.app.models.transaction import Transaction
from token_purchase_service.app.schemas.transaction import TransactionResponse

router = APIRouter(prefix="/api/transactions", tags=["Transactions"])


@router.get("/session/{session_id}", response_model=TransactionResponse)
def transaction_by_session(
    session_id: str,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    txn = db.query(Transaction).filter_by(stripe_session_id=session_id).first()
    if not txn:
        raise not_found(ErrorCode.TRANSACTION_NOT_FOUND, ErrorMessage.TRANSACTION_NOT_FOUND)

    response = TransactionResponse.model_validate(txn)
    response.explorer_url = settings.explorer_link(txn.blockchain_tx_hash)
    return response
