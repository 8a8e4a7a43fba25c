from fastapi import status
from token_purchase_service.app.core.exceptions import AppException


class ErrorCode:
    INVALID_TOKEN_AMOUNT = "INVALID_TOKEN_AMOUNT"
    WALLET_ADDRESS_REQUIRED = "WALLET_ADDRESS_REQUIRED"

    TRANSACTION_NOT_FOUND = "TRANSACTION_NOT_FOUND"
    TRANSACTION_NOT_PENDING = "TRANSACTION_NOT_PENDING"
    TRANSACTION_MISMATCH = "TRANSACTION_MISMATCH"

    CHECKOUT_FAILED = "CHECKOUT_FAILED"

    SIGNATURE_MISSING = "SIGNATURE_MISSING"
    SIGNATURE_INVALID = "SIGNATURE_INVALID"
    INVALID_PAYLOAD = "INVALID_PAYLOAD"
    INVALID_METADATA = "INVALID_METADATA"

    SERVER_MISCONFIGURED = "SERVER_MISCONFIGURED"


class ErrorMessage:
    INVALID_TOKEN_AMOUNT = "Token amount must be one of the available options"
    WALLET_ADDRESS_REQUIRED = "Wallet address is required"

    TRANSACTION_NOT_FOUND = "Transaction not found"
    TRANSACTION_NOT_PENDING = "Transaction already has a checkout session"
    TRANSACTION_MISMATCH = "Transaction does not match the requested purchase"

    CHECKOUT_FAILED = "Failed to create checkout session"

    SIGNATURE_MISSING = "No signature provided"
    SIGNATURE_INVALID = "Webhook signature verification failed"
    INVALID_PAYLOAD = "Invalid payload"
    INVALID_METADATA = "Checkout session metadata is missing or invalid"

    STRIPE_NOT_CONFIGURED = "Stripe is not configured"
    WEBHOOK_NOT_CONFIGURED = "Webhook secret not configured"


def bad_request(code: str, message: str, details: dict | None = None):
    return AppException(
        status_code=status.HTTP_400_BAD_REQUEST,
        code=code,
        message=message,
        details=details
    )


def not_found(code: str, message: str):
    return AppException(
        status_code=status.HTTP_404_NOT_FOUND,
        code=code,
        message=message
    )


def conflict(code: str, message: str):
    return AppException(
        status_code=status.HTTP_409_CONFLICT,
        code=code,
        message=message
    )


def bad_gateway(code: str = ErrorCode.CHECKOUT_FAILED, message: str = ErrorMessage.CHECKOUT_FAILED):
    return AppException(
        status_code=status.HTTP_502_BAD_GATEWAY,
        code=code,
        message=message
    )


def server_misconfigured(message: str):
    return AppException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        code=ErrorCode.SERVER_MISCONFIGURED,
        message=message
    )
