from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from kamkunji.core.exceptions import PaymentError

PAYMENT_PAID = "paid"
PAYMENT_PENDING = "pending"
PAYMENT_FAILED = "failed"


@dataclass
class StkPushResult:
    """
    Outcome of asking a gateway to send the M-Pesa prompt.

    confirmed is True when the gateway only answers once the customer has
    paid (the aggregator does); Daraja answers immediately and the payment
    must then be polled or reported by callback.
    """
    checkout_request_id: str
    reference: Optional[str] = None
    customer_message: Optional[str] = None
    confirmed: bool = False
    raw: Dict[str, Any] = field(default_factory=dict)


@dataclass
class PaymentQueryResult:
    state: str  # paid | pending | failed
    result_code: Optional[str] = None
    description: Optional[str] = None
    error: Optional[PaymentError] = None

    @property
    def is_final(self) -> bool:
        return self.state != PAYMENT_PENDING


def json_or_empty(response) -> Dict[str, Any]:
    """Vendor error bodies are not always JSON"""
    try:
        payload = response.json()
    except ValueError:
        return {}
    return payload if isinstance(payload, dict) else {}
