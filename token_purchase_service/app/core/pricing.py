from decimal import Decimal

TOKEN_OPTIONS = (10, 50, 100, 150, 200, 250)
PRICE_PER_TOKEN_USD = Decimal("1")


def is_allowed_amount(token_amount) -> bool:
    return isinstance(token_amount, int) and not isinstance(token_amount, bool) and token_amount in TOKEN_OPTIONS


def amount_usd_for(token_amount: int) -> Decimal:
    return Decimal(token_amount) * PRICE_PER_TOKEN_USD


def unit_amount_cents() -> int:
    return int(PRICE_PER_TOKEN_USD * 100)
