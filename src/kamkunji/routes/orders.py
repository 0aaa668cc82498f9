import logging

from flask import Blueprint, request

from kamkunji.core.dependencies import get_service
from kamkunji.routes.schemas import CheckoutSchema, RetryPaymentSchema
from kamkunji.routes.utils import get_current_user_id, load_body, parse_page, success_response
from kamkunji.services.order_service import OrderService

logger = logging.getLogger(__name__)

orders_bp = Blueprint("orders", __name__)

_checkout_schema = CheckoutSchema()
_retry_schema = RetryPaymentSchema()


@orders_bp.route("/checkout", methods=["POST"])
def checkout():
    """
    Convert the current user's cart into an order and send the M-Pesa prompt.

    A failed prompt is reported as a payment error; the order stays
    pending_payment and can be paid again through /orders/<id>/pay.
    """
    user_id = get_current_user_id()
    body = load_body(_checkout_schema)
    result = get_service(OrderService).checkout(user_id, body)
    return success_response(result, message=result["payment"]["message"], status=201)


@orders_bp.route("", methods=["GET"])
def list_my_orders():
    user_id = get_current_user_id()
    limit, offset = parse_page()
    status = request.args.get("status") or None
    orders = get_service(OrderService).list_orders(user_id, status=status, limit=limit, offset=offset)
    return success_response({
        "orders": orders,
        "pagination": {"limit": limit, "offset": offset, "count": len(orders)},
    })


@orders_bp.route("/<int:order_id>", methods=["GET"])
def get_order(order_id: int):
    return success_response(get_service(OrderService).get_order(order_id, get_current_user_id()))


@orders_bp.route("/<int:order_id>/payment-status", methods=["GET"])
def payment_status(order_id: int):
    status = get_service(OrderService).check_payment_status(order_id, get_current_user_id())
    return success_response(status)


@orders_bp.route("/<int:order_id>/pay", methods=["POST"])
def retry_payment(order_id: int):
    """Send a new STK push for an order still awaiting payment."""
    user_id = get_current_user_id()
    body = load_body(_retry_schema)
    result = get_service(OrderService).retry_payment(order_id, user_id, body.get("phone"))
    return success_response(result, message=result["payment"]["message"])
