"""
The one place vendor payment failures are turned into typed errors.

Lipia reports failures as free-text messages; Daraja reports them as
numeric ResultCodes. Call sites never inspect either directly.
"""

from typing import Optional, Type, Union
import logging

from kamkunji.core.exceptions import (
    InsufficientFundsError,
    InvalidPhoneError,
    PaymentCancelledError,
    PaymentError,
    PaymentTimeoutError,
)

logger = logging.getLogger(__name__)

_MESSAGE_RULES = (
    ("invalid phone number", InvalidPhoneError),
    ("insufficient user balance", InsufficientFundsError),
    ("user took too long to pay", PaymentTimeoutError),
    ("request cancelled by user", PaymentCancelledError),
)

DARAJA_SUCCESS = "0"
DARAJA_INSUFFICIENT_FUNDS = "1"
DARAJA_CANCELLED = "1032"
DARAJA_UNREACHABLE = "1037"
DARAJA_WRONG_PIN = "2001"

# errorCode Daraja returns from the query endpoint while the customer
# has not yet answered the prompt
DARAJA_STILL_PROCESSING = "500.001.1001"

_RESULT_CODES = {
    DARAJA_INSUFFICIENT_FUNDS: (InsufficientFundsError, None),
    DARAJA_CANCELLED: (PaymentCancelledError, None),
    DARAJA_UNREACHABLE: (PaymentTimeoutError, None),
    DARAJA_WRONG_PIN: (PaymentError, "The M-Pesa PIN entered was incorrect. Please try again."),
}


def classify_provider_message(message: Optional[str]) -> PaymentError:
    """Map an aggregator error message onto the payment error taxonomy"""
    text = (message or "").lower()
    for needle, error_cls in _MESSAGE_RULES:
        if needle in text:
            return error_cls(provider_message=message)
    return PaymentError(message or None, provider_message=message)


def classify_result_code(code: Union[str, int, None], description: Optional[str] = None) -> Optional[PaymentError]:
    """
    Map a Daraja ResultCode onto the taxonomy.

    Returns None for success ("0"); unknown non-zero codes become a plain
    PaymentError carrying the vendor description.
    """
    if code is None:
        return PaymentError(provider_message=description)

    code = str(code)
    if code == DARAJA_SUCCESS:
        return None

    error_cls: Type[PaymentError]
    error_cls, message = _RESULT_CODES.get(code, (PaymentError, None))
    logger.info(f"Daraja result code {code} classified as {error_cls.__name__}")
    return error_cls(message, provider_message=description)
