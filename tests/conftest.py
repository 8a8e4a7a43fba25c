import hashlib
import hmac
import json
import os
import time

WEBHOOK_SECRET = "whsec_test_secret"

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_dummy"
os.environ["STRIPE_WEBHOOK_SECRET"] = WEBHOOK_SECRET
os.environ["CHECKOUT_RATE_LIMIT"] = "1000/minute"
os.environ["FRONTEND_URL"] = "http://localhost:5173"
os.environ["EXPLORER_TX_URL"] = "https://sepolia.etherscan.io/tx/"
for name in ("RPC_URL", "TOKEN_CONTRACT_ADDRESS", "ADMIN_PRIVATE_KEY"):
    os.environ.pop(name, None)

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from token_purchase_service.app.api.deps import get_chain_factory  # noqa: E402
from token_purchase_service.app.db.base import Base  # noqa: E402
from token_purchase_service.app.db.session import get_db  # noqa: E402
from token_purchase_service.app.main import app  # noqa: E402
from token_purchase_service.app.models.transaction import Transaction  # noqa: E402
from token_purchase_service.app.services.chain_service import RpcUnavailable  # noqa: E402

OPERATOR = "0x2c7536E3605D9C16a7a3D7b1898e529396a65c23"
OTHER_OWNER = "0x000000000000000000000000000000000000dEaD"
RECIPIENT = "0x52908400098527886e0f7030069857d2e4169ee7"
TX_HASH = "0x" + "ab" * 32

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class FakeTokenChain:
    """Stands in for TokenChainClient; records every contract call."""

    def __init__(self, owner=None, balance=0, decimals=18, connected=True, operator=OPERATOR):
        self.operator_address = operator
        self._owner = owner
        self._balance = balance
        self._decimals = decimals
        self.connected = connected
        self.calls = []
        self.submitted = []

    def ensure_connected(self):
        self.calls.append("ensure_connected")
        if not self.connected:
            raise RpcUnavailable("RPC endpoint unreachable")

    def decimals(self):
        self.calls.append("decimals")
        return self._decimals

    def owner(self):
        self.calls.append("owner")
        return self._owner

    def balance_of(self, address):
        self.calls.append("balance_of")
        return self._balance

    def mint(self, to, amount):
        self.submitted.append(("mint", to, amount))
        return TX_HASH

    def transfer(self, to, amount):
        self.submitted.append(("transfer", to, amount))
        return TX_HASH


@pytest.fixture
def db_session():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def fake_chain():
    return FakeTokenChain(owner=OPERATOR)


@pytest.fixture
def chain_factory_calls():
    return []


@pytest.fixture
def client(db_session, fake_chain, chain_factory_calls):
    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    def factory():
        chain_factory_calls.append(1)
        return fake_chain

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_chain_factory] = lambda: factory
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_transaction(db_session):
    def _make(status="pending", wallet_address=RECIPIENT, token_amount=50, session_id="cs_test_123", **extra):
        txn = Transaction(
            wallet_address=wallet_address,
            token_amount=token_amount,
            amount_usd=token_amount,
            status=status,
            stripe_session_id=session_id,
            **extra,
        )
        db_session.add(txn)
        db_session.commit()
        return txn.id

    return _make


@pytest.fixture
def load_transaction(db_session):
    def _load(transaction_id):
        db_session.expire_all()
        return db_session.query(Transaction).filter_by(id=transaction_id).first()

    return _load


def stripe_signature(payload: str, secret: str = WEBHOOK_SECRET, timestamp: int | None = None) -> str:
    timestamp = timestamp or int(time.time())
    signature = hmac.new(
        secret.encode(),
        f"{timestamp}.{payload}".encode(),
        hashlib.sha256,
    ).hexdigest()
    return f"t={timestamp},v1={signature}"


def checkout_completed_event(transaction_id, wallet_address=RECIPIENT, token_amount=50, event_type="checkout.session.completed"):
    return {
        "id": "evt_test_1",
        "object": "event",
        "type": event_type,
        "data": {
            "object": {
                "id": "cs_test_123",
                "object": "checkout.session",
                "payment_status": "paid",
                "metadata": {
                    "transactionId": transaction_id,
                    "walletAddress": wallet_address,
                    "tokenAmount": str(token_amount),
                },
            }
        },
    }


@pytest.fixture
def post_event(client):
    def _post(event, secret=WEBHOOK_SECRET, signature=None, raw=None):
        payload = raw if raw is not None else json.dumps(event)
        headers = {"content-type": "application/json"}
        if signature is not False:
            headers["stripe-signature"] = signature or stripe_signature(payload, secret)
        return client.post("/webhooks/stripe", content=payload, headers=headers)

    return _post


@pytest.fixture
def completed_event():
    return checkout_completed_event
