from typing import Dict, Optional, Union
from decimal import Decimal
import logging

import requests
from pydantic import ValidationError as PydanticValidationError

from kamkunji.clients.gateway import PaymentQueryResult, StkPushResult, json_or_empty
from kamkunji.clients.payment_errors import classify_provider_message
from kamkunji.core.config import LipiaConfig
from kamkunji.core.exceptions import BusinessLogicError, ExternalServiceError
from kamkunji.schemas.payment_schemas import LipiaStkResponse
from kamkunji.utils.validators import ValidationUtils

logger = logging.getLogger(__name__)


class LipiaClient:
    """
    STK push through the Lipia aggregator

    POST {base}/request/stk with a Bearer key and X-App-ID header. The call
    blocks until the customer has answered the prompt, so a 2xx answer
    means the payment went through and errors carry the reason as text.
    """

    name = "lipia"
    supports_status_query = False
    STK_PATH = "/request/stk"

    def __init__(self, config: LipiaConfig, session: Optional[requests.Session] = None):
        self.config = config
        self.session = session or requests.Session()

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.config.api_key}",
            "X-App-ID": self.config.app_id,
        }

    def stk_push(self, phone: str, amount: Union[int, Decimal], order_id: Optional[int] = None) -> StkPushResult:
        if not self.config.api_key:
            raise ExternalServiceError(self.name, "Payment gateway is not configured")

        body = {"phone": phone, "amount": str(amount)}
        url = f"{self.config.base_url.rstrip('/')}{self.STK_PATH}"
        logger.info(
            f"Lipia STK push: phone={ValidationUtils.mask_phone(phone)} amount={amount} order={order_id}"
        )

        try:
            response = self.session.post(
                url, json=body, headers=self._headers(), timeout=self.config.timeout_seconds
            )
        except requests.RequestException as e:
            logger.error(f"Lipia request failed: {str(e)}")
            raise ExternalServiceError(self.name, "Payment service is unavailable. Please try again.") from e

        payload = json_or_empty(response)

        if not response.ok:
            message = payload.get("message") or payload.get("error")
            logger.warning(f"Lipia rejected STK push ({response.status_code}): {message}")
            if not message and response.status_code >= 500:
                raise ExternalServiceError(self.name, "Payment service is unavailable. Please try again.")
            raise classify_provider_message(
                message or f"Lipia API request failed with status {response.status_code}"
            )

        try:
            parsed = LipiaStkResponse.model_validate(payload)
        except PydanticValidationError as e:
            logger.error(f"Unexpected Lipia response: {payload}")
            raise ExternalServiceError(self.name, "Unexpected response from payment service") from e

        logger.info(
            f"Lipia STK push accepted: reference={parsed.data.reference} "
            f"checkout_request_id={parsed.data.checkout_request_id}"
        )
        return StkPushResult(
            checkout_request_id=parsed.data.checkout_request_id,
            reference=parsed.data.reference,
            customer_message=parsed.message,
            confirmed=True,
            raw=payload,
        )

    def query_status(self, checkout_request_id: str) -> PaymentQueryResult:
        raise BusinessLogicError(
            "Payment status queries are not supported by the configured gateway",
            rule="status_query_unsupported",
        )
