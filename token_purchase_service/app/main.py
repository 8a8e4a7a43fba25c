import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from token_purchase_service.app.api.routes import checkout, transactions, webhooks
from token_purchase_service.app.core.config import get_settings
from token_purchase_service.app.core.exceptions import AppException
from token_purchase_service.app.core.handlers import app_exception_handler
from token_purchase_service.app.core.logging_config import configure_logging
from token_purchase_service.app.core.rate_limit import limiter
from token_purchase_service.app.db.base import Base
from token_purchase_service.app.db.session import engine
from token_purchase_service.app.models.transaction import Transaction  # noqa: F401  registers the table
from token_purchase_service.app.services.stripe_service import configure_stripe

VERSION = "1.0.0"

settings = get_settings()
configure_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_stripe(settings)
    Base.metadata.create_all(bind=engine)
    logger.info("Database initialized")
    yield


app = FastAPI(title="Token Purchase Service", version=VERSION, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["authorization", "content-type", "stripe-signature"],
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_exception_handler(AppException, app_exception_handler)

app.include_router(checkout.router)
app.include_router(transactions.router)
app.include_router(webhooks.router)


@app.get("/")
def health_check():
    return {"status": "healthy", "version": VERSION}
