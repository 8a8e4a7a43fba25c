from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict


class TransactionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    wallet_address: str
    token_amount: int
    amount_usd: Decimal
    status: str
    stripe_session_id: Optional[str] = None
    blockchain_tx_hash: Optional[str] = None
    error_message: Optional[str] = None
    explorer_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
