from typing import Any, Callable, Dict, Optional, Union
from decimal import Decimal
import base64
import logging
import threading
import time

import requests
from pydantic import ValidationError as PydanticValidationError

from kamkunji.clients.gateway import (
    PAYMENT_FAILED, PAYMENT_PAID, PAYMENT_PENDING, PaymentQueryResult, StkPushResult, json_or_empty,
)
from kamkunji.clients.payment_errors import (
    DARAJA_STILL_PROCESSING, classify_provider_message, classify_result_code,
)
from kamkunji.core.config import MpesaConfig
from kamkunji.core.exceptions import ExternalServiceError, ValidationError
from kamkunji.schemas.payment_schemas import (
    DarajaCallback, DarajaErrorResponse, DarajaStkPushResponse, DarajaStkQueryResponse,
    DarajaTokenResponse,
)
from kamkunji.utils.date_utils import DateUtils
from kamkunji.utils.validators import ValidationUtils

logger = logging.getLogger(__name__)


class DarajaClient:
    """
    Direct Safaricom Daraja integration

    - OAuth client-credentials token, cached until shortly before expiry
    - Lipa Na M-Pesa Online STK push (CustomerPayBillOnline)
    - STK push status query
    - Parsing of the asynchronous result callback
    """

    name = "daraja"
    supports_status_query = True

    TOKEN_PATH = "/oauth/v1/generate?grant_type=client_credentials"
    STK_PUSH_PATH = "/mpesa/stkpush/v1/processrequest"
    STK_QUERY_PATH = "/mpesa/stkpushquery/v1/query"
    TRANSACTION_TYPE = "CustomerPayBillOnline"
    # Refresh this many seconds before Daraja says the token expires
    TOKEN_EXPIRY_MARGIN = 60

    def __init__(
        self,
        config: MpesaConfig,
        session: Optional[requests.Session] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config
        self.session = session or requests.Session()
        self._clock = clock
        self._token: Optional[str] = None
        self._token_expires_at = 0.0
        self._token_lock = threading.Lock()

    @property
    def base_url(self) -> str:
        return self.config.base_url.rstrip("/")

    def _ensure_configured(self) -> None:
        missing = [
            name for name in ("consumer_key", "consumer_secret", "passkey", "shortcode")
            if not getattr(self.config, name)
        ]
        if missing:
            logger.error(f"Daraja is missing configuration: {', '.join(missing)}")
            raise ExternalServiceError(self.name, "Payment gateway is not configured")

    def get_access_token(self) -> str:
        with self._token_lock:
            if self._token and self._clock() < self._token_expires_at:
                return self._token

            credentials = f"{self.config.consumer_key}:{self.config.consumer_secret}"
            headers = {
                "Authorization": f"Basic {base64.b64encode(credentials.encode()).decode()}",
            }
            try:
                response = self.session.get(
                    f"{self.base_url}{self.TOKEN_PATH}",
                    headers=headers,
                    timeout=self.config.timeout_seconds,
                )
            except requests.RequestException as e:
                logger.error(f"Daraja OAuth request failed: {str(e)}")
                raise ExternalServiceError(self.name, "Failed to get M-Pesa access token") from e

            if not response.ok:
                logger.error(f"Daraja OAuth rejected with status {response.status_code}")
                raise ExternalServiceError(self.name, "Failed to get M-Pesa access token")

            try:
                token = DarajaTokenResponse.model_validate(json_or_empty(response))
            except PydanticValidationError as e:
                raise ExternalServiceError(self.name, "Failed to get M-Pesa access token") from e

            self._token = token.access_token
            self._token_expires_at = self._clock() + max(token.expires_in - self.TOKEN_EXPIRY_MARGIN, 0)
            logger.info("Daraja access token refreshed")
            return self._token

    def build_password(self, timestamp: str) -> str:
        raw = f"{self.config.shortcode}{self.config.passkey}{timestamp}"
        return base64.b64encode(raw.encode()).decode()

    def callback_url_for(self, order_id: Optional[int]) -> str:
        url = self.config.callback_url
        if order_id is None:
            return url
        separator = "&" if "?" in url else "?"
        return f"{url}{separator}orderId={order_id}"

    def _post(self, path: str, body: Dict[str, Any]):
        headers = {
            "Authorization": f"Bearer {self.get_access_token()}",
            "Content-Type": "application/json",
        }
        try:
            return self.session.post(
                f"{self.base_url}{path}", json=body, headers=headers,
                timeout=self.config.timeout_seconds,
            )
        except requests.RequestException as e:
            logger.error(f"Daraja request to {path} failed: {str(e)}")
            raise ExternalServiceError(self.name, "Payment service is unavailable. Please try again.") from e

    def stk_push(self, phone: str, amount: Union[int, Decimal], order_id: Optional[int] = None) -> StkPushResult:
        """
        Send the payment prompt. phone may be in any local form; Daraja
        gets the 2547XXXXXXXX MSISDN.
        """
        self._ensure_configured()
        msisdn = ValidationUtils.to_msisdn(phone)
        timestamp = DateUtils.mpesa_timestamp()

        body = {
            "BusinessShortCode": self.config.shortcode,
            "Password": self.build_password(timestamp),
            "Timestamp": timestamp,
            "TransactionType": self.TRANSACTION_TYPE,
            "Amount": int(amount),
            "PartyA": msisdn,
            "PartyB": self.config.shortcode,
            "PhoneNumber": msisdn,
            "CallBackURL": self.callback_url_for(order_id),
            "AccountReference": f"Order-{order_id}",
            "TransactionDesc": f"Payment for order {order_id}",
        }
        logger.info(f"Daraja STK push: phone={ValidationUtils.mask_phone(msisdn)} amount={amount} order={order_id}")

        response = self._post(self.STK_PUSH_PATH, body)
        payload = json_or_empty(response)

        if not response.ok:
            error = DarajaErrorResponse.model_validate(payload)
            logger.warning(f"Daraja rejected STK push ({response.status_code}): {error.error_message}")
            raise classify_provider_message(error.error_message or "Failed to initiate payment")

        try:
            parsed = DarajaStkPushResponse.model_validate(payload)
        except PydanticValidationError as e:
            logger.error(f"Unexpected Daraja STK push response: {payload}")
            raise ExternalServiceError(self.name, "Unexpected response from payment service") from e

        if not parsed.accepted:
            raise classify_provider_message(parsed.response_description or parsed.customer_message)

        logger.info(f"Daraja STK push accepted: checkout_request_id={parsed.checkout_request_id}")
        return StkPushResult(
            checkout_request_id=parsed.checkout_request_id,
            reference=parsed.merchant_request_id,
            customer_message=parsed.customer_message,
            confirmed=False,
            raw=payload,
        )

    def query_status(self, checkout_request_id: str) -> PaymentQueryResult:
        self._ensure_configured()
        timestamp = DateUtils.mpesa_timestamp()
        body = {
            "BusinessShortCode": self.config.shortcode,
            "Password": self.build_password(timestamp),
            "Timestamp": timestamp,
            "CheckoutRequestID": checkout_request_id,
        }

        response = self._post(self.STK_QUERY_PATH, body)
        payload = json_or_empty(response)

        if not response.ok:
            error = DarajaErrorResponse.model_validate(payload)
            if error.error_code == DARAJA_STILL_PROCESSING:
                return PaymentQueryResult(PAYMENT_PENDING, description=error.error_message)
            logger.warning(f"Daraja status query failed ({response.status_code}): {error.error_message}")
            raise ExternalServiceError(self.name, "Failed to verify payment")

        parsed = DarajaStkQueryResponse.model_validate(payload)
        if parsed.result_code is None:
            return PaymentQueryResult(PAYMENT_PENDING, description=parsed.result_desc)

        error = classify_result_code(parsed.result_code, parsed.result_desc)
        if error is None:
            return PaymentQueryResult(PAYMENT_PAID, parsed.result_code, parsed.result_desc)
        return PaymentQueryResult(PAYMENT_FAILED, parsed.result_code, parsed.result_desc, error)

    @staticmethod
    def parse_callback(payload: Any) -> DarajaCallback:
        try:
            return DarajaCallback.model_validate(payload)
        except PydanticValidationError as e:
            raise ValidationError("Malformed M-Pesa callback body") from e
