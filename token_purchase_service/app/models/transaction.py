import uuid
from enum import Enum

from sqlalchemy import CheckConstraint, Column, DateTime, Integer, Numeric, String, Text
from sqlalchemy.sql import func

from token_purchase_service.app.db.base import Base


class TransactionStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class Transaction(Base):
    __tablename__ = "transactions"
    __table_args__ = (
        CheckConstraint(
            "blockchain_tx_hash IS NULL OR error_message IS NULL",
            name="ck_transactions_hash_xor_error",
        ),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    wallet_address = Column(String, nullable=False)
    token_amount = Column(Integer, nullable=False)
    amount_usd = Column(Numeric(10, 2), nullable=False)

    # pending -> processing -> completed | failed
    status = Column(String(16), nullable=False, default=TransactionStatus.PENDING.value)

    stripe_session_id = Column(String, unique=True, index=True, nullable=True)
    blockchain_tx_hash = Column(String, nullable=True)
    error_message = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    completed_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<Transaction {self.id} {self.status} {self.token_amount} -> {self.wallet_address}>"
