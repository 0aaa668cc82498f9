from typing import Any, Dict, Optional, Union
from decimal import Decimal
import logging

from kamkunji.clients.gateway import PaymentQueryResult, StkPushResult
from kamkunji.core.exceptions import BusinessLogicError, ValidationError
from kamkunji.utils.formatting_utils import FormattingUtils
from kamkunji.utils.validators import ValidationUtils

logger = logging.getLogger(__name__)

STATUS_MESSAGES = {
    "processing": "Payment is being processed. Please check your phone for the M-Pesa prompt.",
    "success": "Payment successful! Your order has been confirmed.",
    "error": "Payment failed. Please try again or contact support.",
    "cancelled": "Payment was cancelled. Please try again.",
}
UNKNOWN_STATUS_MESSAGE = "Payment status unknown."


class PaymentService:
    """
    M-Pesa payments through whichever gateway is configured

    The gateway is either the Lipia aggregator or Daraja; both expose
    stk_push(phone, amount, order_id) and query_status(checkout_request_id).
    """

    def __init__(self, gateway):
        self.gateway = gateway

    @staticmethod
    def validate_phone_number(phone: Any) -> bool:
        return ValidationUtils.validate_phone_number(phone)

    @staticmethod
    def format_phone_number(phone: str) -> str:
        return ValidationUtils.format_phone_number(phone)

    @staticmethod
    def get_payment_status_message(status: str) -> str:
        return STATUS_MESSAGES.get(status, UNKNOWN_STATUS_MESSAGE)

    @property
    def supports_status_query(self) -> bool:
        return bool(getattr(self.gateway, "supports_status_query", False))

    def _validated(self, phone: Any, amount: Union[int, float, Decimal, str, None]) -> int:
        if not self.validate_phone_number(phone):
            raise ValidationError(
                "Invalid phone number format. Please use format: 07XXXXXXXX",
                field_errors=[{"field": "phone", "message": "Expected 07XXXXXXXX"}],
            )
        try:
            value = FormattingUtils.to_decimal(amount)
        except ValueError:
            value = Decimal("0")
        if value <= 0:
            raise ValidationError(
                "Invalid amount. Amount must be a positive number",
                field_errors=[{"field": "amount", "message": "Must be a positive number"}],
            )

        whole = FormattingUtils.to_whole_shillings(value)
        if whole < 1:
            raise ValidationError("Invalid amount. M-Pesa payments must be at least KSh 1")
        return whole

    def request_stk_push(self, phone: str, amount: Union[int, float, Decimal, str],
                         order_id: Optional[int] = None) -> StkPushResult:
        """
        Validate, then forward to the gateway. Gateway errors are already
        classified into PaymentError subclasses or ExternalServiceError.
        """
        whole = self._validated(phone, amount)
        logger.info(
            f"Initiating payment via {self.gateway.name}: phone={ValidationUtils.mask_phone(phone)} "
            f"amount={whole} order={order_id}"
        )
        return self.gateway.stk_push(phone, whole, order_id)

    def initiate_payment(self, phone: str, amount: Union[int, float, Decimal, str],
                         order_id: Optional[int] = None) -> Dict[str, Any]:
        result = self.request_stk_push(phone, amount, order_id)
        return {
            "reference": result.reference,
            "CheckoutRequestID": result.checkout_request_id,
            "phone": phone,
            "amount": FormattingUtils.to_whole_shillings(amount),
            "confirmed": result.confirmed,
            "message": result.customer_message,
        }

    def query_status(self, checkout_request_id: str) -> PaymentQueryResult:
        if not self.supports_status_query:
            raise BusinessLogicError(
                "Payment status queries are not supported by the configured gateway",
                rule="status_query_unsupported",
            )
        return self.gateway.query_status(checkout_request_id)
