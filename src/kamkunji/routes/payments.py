import logging

from flask import Blueprint, jsonify, request

from kamkunji.core.dependencies import get_service
from kamkunji.routes.schemas import InitiatePaymentSchema
from kamkunji.routes.utils import load_body, parse_int, success_response
from kamkunji.services.order_service import OrderService
from kamkunji.services.payment_service import PaymentService

logger = logging.getLogger(__name__)

payments_bp = Blueprint("payments", __name__)

_initiate_schema = InitiatePaymentSchema()


@payments_bp.route("", methods=["POST"])
def initiate_payment():
    """Validate phone and amount, then forward an STK push to the gateway."""
    body = load_body(_initiate_schema)
    payment = get_service(PaymentService).initiate_payment(
        body["phone"], body["amount"], body.get("order_id")
    )
    return success_response(payment, message=payment["message"])


@payments_bp.route("/callback", methods=["POST"])
def payment_callback():
    """
    Daraja STK result callback.

    The order is matched on CheckoutRequestID; the orderId on the callback
    URL is only checked against it. Safaricom only needs the acknowledgement.
    """
    order_id = parse_int(request.args.get("orderId"), default=None, min_val=1, field_name="orderId")
    order = get_service(OrderService).handle_payment_callback(request.get_json(silent=True), order_id)
    logger.info(f"Callback processed for order {order['id']}: {order['payment_status']}")
    return jsonify({"ResultCode": 0, "ResultDesc": "Accepted"}), 200
