from slowapi import Limiter
from slowapi.util import get_remote_address

from token_purchase_service.app.core.config import get_settings


limiter = Limiter(key_func=get_remote_address)


def checkout_rate_limit() -> str:
    return get_settings().CHECKOUT_RATE_LIMIT
