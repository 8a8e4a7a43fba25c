from decimal import Decimal
from typing import Any, List, Optional

from pydantic import BaseModel


class CheckoutSessionRequest(BaseModel):
    # checked in the checkout service so bad input gets the app error body
    tokenAmount: Any = None
    walletAddress: Any = None
    transactionId: Optional[str] = None


class CheckoutSessionResponse(BaseModel):
    sessionId: str
    url: Optional[str] = None
    transactionId: str


class TokenOption(BaseModel):
    tokenAmount: int
    amountUsd: Decimal


class TokenOptionsResponse(BaseModel):
    tokenName: str
    pricePerTokenUsd: Decimal
    options: List[TokenOption]
