from typing import Any, Dict, List, Optional
from decimal import Decimal
import logging

from kamkunji.clients.daraja_client import DarajaClient
from kamkunji.clients.gateway import PAYMENT_FAILED, PAYMENT_PAID
from kamkunji.clients.payment_errors import classify_result_code
from kamkunji.core.config import APIConfig, PaymentPollConfig
from kamkunji.core.exceptions import (
    BusinessLogicError, ConflictError, ExternalServiceError, NotFoundError, PaymentCancelledError,
    PaymentError, ValidationError,
)
from kamkunji.models.order import OrderStatus, PaymentStatus, can_transition
from kamkunji.repositories.cart_repository import CartRepository
from kamkunji.repositories.order_repository import OrderRepository
from kamkunji.services.email_service import EmailService
from kamkunji.services.payment_poller import (
    OUTCOME_FAILED, OUTCOME_PAID, PaymentPoller, PaymentPollerRegistry, PollResult,
)
from kamkunji.services.payment_service import PaymentService
from kamkunji.utils.date_utils import DateUtils
from kamkunji.utils.formatting_utils import FormattingUtils
from kamkunji.utils.validators import ValidationUtils

logger = logging.getLogger(__name__)

SHIPPING_REQUIRED_FIELDS = ("full_name", "email", "phone", "address", "city")


def serialize_order(row: Dict[str, Any], items: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
    data = {
        "id": int(row["id"]),
        "user_id": row["user_id"],
        "full_name": row["full_name"],
        "email": row["email"],
        "phone": row["phone"],
        "shipping_address": row["shipping_address"],
        "total_amount": FormattingUtils.money(row["total_amount"]),
        "total_display": FormattingUtils.format_ksh(row["total_amount"]),
        "status": row["status"],
        "payment_status": row["payment_status"],
        "payment_method": row["payment_method"],
        "checkout_request_id": row["checkout_request_id"],
        "payment_reference": row["payment_reference"],
        "created_at": DateUtils.to_iso_string(row["created_at"]),
        "updated_at": DateUtils.to_iso_string(row["updated_at"]),
    }
    if items is not None:
        data["items"] = [
            {
                "id": int(item["id"]),
                "product_id": item["product_id"],
                "product_name": item["product_name"],
                "quantity": int(item["quantity"]),
                "price": FormattingUtils.money(item["price"]),
                "price_display": FormattingUtils.format_ksh(item["price"]),
                "subtotal": FormattingUtils.money(
                    FormattingUtils.to_decimal(item["price"]) * int(item["quantity"])
                ),
            }
            for item in items
        ]
    return data


class OrderService:
    """
    Order business logic service

    Responsibilities:
    - Checkout: cart -> order -> STK push -> payment confirmation
    - The single order lifecycle (see ORDER_TRANSITIONS)
    - Customer notifications on payment and status changes
    """

    def __init__(
        self,
        order_repository: OrderRepository,
        cart_repository: CartRepository,
        payment_service: PaymentService,
        email_service: EmailService,
        poller_registry: PaymentPollerRegistry,
        poll_config: PaymentPollConfig,
        api_config: APIConfig,
    ):
        self.order_repo = order_repository
        self.cart_repo = cart_repository
        self.payment_service = payment_service
        self.email_service = email_service
        self.poller_registry = poller_registry
        self.poll_config = poll_config
        self.api_config = api_config

    # ---- reads ---- #

    def _load(self, order_id: int, user_id: Optional[int] = None) -> Dict[str, Any]:
        """Order with items; user_id restricts to that customer's orders"""
        row = self.order_repo.get_by_id(order_id)
        if row is None or (user_id is not None and row["user_id"] != user_id):
            raise NotFoundError("Order", str(order_id))
        items = self.order_repo.get_items([order_id])[order_id]
        return serialize_order(row, items)

    def get_order(self, order_id: int, user_id: Optional[int] = None) -> Dict[str, Any]:
        return self._load(order_id, user_id)

    def _page(self, limit: Optional[int]) -> int:
        if limit is None:
            return self.api_config.default_page_size
        return max(1, min(limit, self.api_config.max_page_size))

    def list_orders(self, user_id: int, status: Optional[str] = None,
                    limit: Optional[int] = None, offset: int = 0) -> List[Dict[str, Any]]:
        self._check_status_value(status)
        rows = self.order_repo.list_orders(
            limit=self._page(limit), offset=max(offset, 0), user_id=user_id, status=status
        )
        return self._with_items(rows)

    def admin_list_orders(
        self,
        status: Optional[str] = None,
        search: Optional[str] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        """
        Search covers order id, email, full name and phone. Dates are ISO
        strings; a bare end date includes that whole day.
        """
        self._check_status_value(status)
        start = self._parse_date_bound(start_date, "start_date", end_of_day=False)
        end = self._parse_date_bound(end_date, "end_date", end_of_day=True)

        rows = self.order_repo.list_orders(
            limit=self._page(limit),
            offset=max(offset, 0),
            status=status,
            search=ValidationUtils.sanitize_text(search, 100) or None,
            start_date=start,
            end_date=end,
        )
        return self._with_items(rows)

    def recent_orders(self, limit: int = 5) -> List[Dict[str, Any]]:
        return [serialize_order(row) for row in self.order_repo.list_orders(limit=limit)]

    def _with_items(self, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        items = self.order_repo.get_items([int(row["id"]) for row in rows])
        return [serialize_order(row, items[int(row["id"])]) for row in rows]

    @staticmethod
    def _check_status_value(status: Optional[str]) -> None:
        if status is None:
            return
        try:
            OrderStatus(status)
        except ValueError:
            raise ValidationError(
                f"Unknown order status: {status}",
                field_errors=[{"field": "status", "message": "Invalid status"}],
            )

    @staticmethod
    def _parse_date_bound(value: Optional[str], field: str, end_of_day: bool) -> Optional[str]:
        if not value:
            return None
        try:
            parsed = DateUtils.parse_iso_string(value)
        except ValueError:
            raise ValidationError(
                f"Invalid {field}: expected an ISO 8601 date",
                field_errors=[{"field": field, "message": "Invalid date"}],
            )
        if end_of_day and len(value) == 10:
            parsed = DateUtils.get_end_of_day(parsed)
        return DateUtils.to_db_string(parsed)

    # ---- checkout ---- #

    @staticmethod
    def validate_shipping(shipping: Dict[str, Any]) -> Dict[str, Any]:
        errors = [
            {"field": name, "message": "This field is required"}
            for name in SHIPPING_REQUIRED_FIELDS
            if not str(shipping.get(name) or "").strip()
        ]
        if errors:
            raise ValidationError("Please fill in all shipping details", field_errors=errors)

        phone = str(shipping["phone"]).strip()
        if not ValidationUtils.validate_phone_number(phone):
            raise ValidationError(
                "Invalid phone number format. Please use format: 07XXXXXXXX",
                field_errors=[{"field": "phone", "message": "Expected 07XXXXXXXX"}],
            )

        return {
            "full_name": ValidationUtils.sanitize_text(shipping["full_name"], ValidationUtils.MAX_NAME_LENGTH),
            "email": ValidationUtils.normalize_email(str(shipping["email"]).strip()),
            "phone": phone,
            "address": ValidationUtils.sanitize_text(shipping["address"], ValidationUtils.MAX_NAME_LENGTH),
            "city": ValidationUtils.sanitize_text(shipping["city"], ValidationUtils.MAX_NAME_LENGTH),
            "additional_info": ValidationUtils.sanitize_text(
                shipping.get("additional_info"), ValidationUtils.MAX_TEXT_LENGTH
            ) or None,
        }

    def _price_cart(self, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Lines for the order; products no longer approved are left behind"""
        lines = [row for row in rows if row["product_status"] == "approved"]
        dropped = len(rows) - len(lines)
        if dropped:
            logger.info(f"Checkout skipping {dropped} cart items whose products are no longer approved")
        if not lines:
            raise BusinessLogicError(
                "None of the items in your cart are still available",
                rule="cart_items_unavailable",
            )

        short = [row["product_name"] for row in lines if int(row["stock_quantity"]) < int(row["quantity"])]
        if short:
            raise BusinessLogicError(
                f"Some items are no longer available: {', '.join(short)}",
                rule="cart_items_unavailable",
            )
        return [
            {
                "product_id": int(row["product_id"]),
                "product_name": row["product_name"],
                "quantity": int(row["quantity"]),
                "price": FormattingUtils.to_decimal(row["price"]),
            }
            for row in lines
        ]

    def checkout(self, user_id: int, shipping: Dict[str, Any]) -> Dict[str, Any]:
        """
        Turn the user's cart into an order and send the M-Pesa prompt

        Business Rules:
        - An empty cart is rejected before anything else, network included
        - Prices are taken from the products now, not from when they were carted
        - Items whose product is no longer approved are dropped, not ordered
        - Order, items and cart clearing commit together
        - A failed STK push leaves the order pending_payment with
          payment_status 'failed' so the customer can retry
        """
        rows = self.cart_repo.get_items(user_id)
        if not rows:
            raise BusinessLogicError("Your cart is empty", rule="empty_cart")

        details = self.validate_shipping(shipping)
        lines = self._price_cart(rows)
        total = sum((line["price"] * line["quantity"] for line in lines), Decimal("0"))

        order_record = {
            "user_id": user_id,
            "full_name": details["full_name"],
            "email": details["email"],
            "phone": details["phone"],
            "shipping_address": {
                "address": details["address"],
                "city": details["city"],
                "additional_info": details["additional_info"],
            },
            "total_amount": str(total),
            "status": OrderStatus.PENDING_PAYMENT.value,
            "payment_status": PaymentStatus.PENDING.value,
            "payment_method": "mpesa",
        }

        with self.order_repo.transaction() as conn:
            order_id = self.order_repo.create(order_record, conn)
            self.order_repo.add_items(
                order_id, [dict(line, price=str(line["price"])) for line in lines], conn
            )
            self.cart_repo.clear(user_id, conn)

        logger.info(f"Order {order_id} created for user {user_id}: {len(lines)} lines, total {total}")

        payment = self._start_payment(order_id, details["phone"], total)
        return {"order": self._load(order_id), "payment": payment}

    def retry_payment(self, order_id: int, user_id: Optional[int] = None,
                      phone: Optional[str] = None) -> Dict[str, Any]:
        """Send a fresh STK push for an order still awaiting payment"""
        order = self._load(order_id, user_id)
        if order["status"] != OrderStatus.PENDING_PAYMENT.value:
            raise ConflictError(
                f"Order {order_id} is {order['status']} and cannot be paid again",
                conflict_field="status",
            )
        self.order_repo.update_fields(order_id, {"payment_status": PaymentStatus.PENDING.value})
        payment = self._start_payment(order_id, phone or order["phone"], order["total_amount"])
        return {"order": self._load(order_id), "payment": payment}

    def _start_payment(self, order_id: int, phone: str, amount: Any) -> Dict[str, Any]:
        try:
            result = self.payment_service.request_stk_push(phone, amount, order_id)
        except (PaymentError, ExternalServiceError, ValidationError) as e:
            self.order_repo.update_fields(order_id, {"payment_status": PaymentStatus.FAILED.value})
            logger.warning(f"STK push for order {order_id} failed: {e.internal_message}")
            raise e.add_detail("order_id", order_id)

        self.order_repo.update_fields(order_id, {
            "checkout_request_id": result.checkout_request_id,
            "payment_reference": result.reference,
        })

        if result.confirmed:
            self.record_payment_result(order_id, PAYMENT_PAID)
            status_key = "success"
        else:
            self._start_polling(order_id, result.checkout_request_id)
            status_key = "processing"

        return {
            "checkout_request_id": result.checkout_request_id,
            "reference": result.reference,
            "customer_message": result.customer_message,
            "status": status_key,
            "message": self.payment_service.get_payment_status_message(status_key),
        }

    def _start_polling(self, order_id: int, checkout_request_id: str) -> None:
        if not (self.poll_config.enabled and self.payment_service.supports_status_query):
            return

        poller = PaymentPoller(
            lambda: self.payment_service.query_status(checkout_request_id),
            max_attempts=self.poll_config.max_attempts,
            interval_seconds=self.poll_config.interval_seconds,
            label=f"order-{order_id}",
        )

        def _on_done(result: PollResult) -> None:
            if result.outcome == OUTCOME_PAID:
                self.record_payment_result(order_id, PAYMENT_PAID)
            elif result.outcome == OUTCOME_FAILED:
                reason = result.last_result.description if result.last_result else None
                self.record_payment_result(order_id, PAYMENT_FAILED, reason=reason)

        self.poller_registry.start(order_id, poller, _on_done)

    # ---- payment results ---- #

    def record_payment_result(self, order_id: int, outcome: str,
                              receipt: Optional[str] = None,
                              reason: Optional[str] = None) -> Dict[str, Any]:
        """
        Apply a confirmed payment outcome

        Business Rules:
        - 'paid' moves pending_payment -> paid once; later reports are ignored
        - a failure only marks payment_status, the order stays payable
        - the confirmation email goes out once, after the state change
        """
        if outcome == PAYMENT_PAID:
            fields = {
                "status": OrderStatus.PAID.value,
                "payment_status": PaymentStatus.PAID.value,
            }
            if receipt:
                fields["payment_reference"] = receipt
            changed = self.order_repo.update_status_if(
                order_id, OrderStatus.PENDING_PAYMENT.value, fields
            )
            order = self._load(order_id)
            if changed:
                logger.info(f"Order {order_id} paid (receipt={receipt})")
                self.poller_registry.cancel(order_id)
                self.email_service.send_payment_confirmation(order)
            else:
                logger.info(f"Ignoring duplicate payment confirmation for order {order_id} ({order['status']})")
            return order

        if outcome == PAYMENT_FAILED:
            self.order_repo.update_status_if(
                order_id, OrderStatus.PENDING_PAYMENT.value,
                {"payment_status": PaymentStatus.FAILED.value},
            )
            logger.info(f"Payment for order {order_id} failed: {reason}")
            return self._load(order_id)

        raise ValueError(f"Unknown payment outcome: {outcome}")

    def handle_payment_callback(self, payload: Any, order_id: Optional[int] = None) -> Dict[str, Any]:
        """
        Daraja result callback. Only an order holding the callback's
        CheckoutRequestID can be settled by it; the orderId carried on the
        callback URL must name that same order when present.
        """
        callback = DarajaClient.parse_callback(payload).callback

        row = self.order_repo.get_by_checkout_request_id(callback.checkout_request_id)
        if row is None or (order_id is not None and int(row["id"]) != order_id):
            logger.warning(
                f"Callback for unknown CheckoutRequestID {callback.checkout_request_id} (orderId={order_id})"
            )
            raise NotFoundError("Order", callback.checkout_request_id)

        error = classify_result_code(callback.result_code, callback.result_desc)
        if error is None:
            return self.record_payment_result(int(row["id"]), PAYMENT_PAID, receipt=callback.receipt_number)
        return self.record_payment_result(int(row["id"]), PAYMENT_FAILED, reason=error.message)

    def check_payment_status(self, order_id: int, user_id: Optional[int] = None) -> Dict[str, Any]:
        """One-shot status check; asks the gateway only while the answer is still open"""
        order = self._load(order_id, user_id)

        if (
            order["status"] == OrderStatus.PENDING_PAYMENT.value
            and order["payment_status"] == PaymentStatus.PENDING.value
            and order["checkout_request_id"]
            and self.payment_service.supports_status_query
        ):
            result = self.payment_service.query_status(order["checkout_request_id"])
            if result.state == PAYMENT_PAID:
                order = self.record_payment_result(order_id, PAYMENT_PAID)
            elif result.state == PAYMENT_FAILED:
                order = self.record_payment_result(order_id, PAYMENT_FAILED, reason=result.description)
                if isinstance(result.error, PaymentCancelledError):
                    return self._status_view(order, "cancelled")

        if order["payment_status"] == PaymentStatus.PAID.value:
            key = "success"
        elif order["payment_status"] == PaymentStatus.FAILED.value:
            key = "error"
        else:
            key = "processing"
        return self._status_view(order, key)

    def _status_view(self, order: Dict[str, Any], key: str) -> Dict[str, Any]:
        return {
            "order_id": order["id"],
            "status": order["status"],
            "payment_status": order["payment_status"],
            "message": self.payment_service.get_payment_status_message(key),
        }

    # ---- lifecycle ---- #

    def update_status(self, order_id: int, new_status: str) -> Dict[str, Any]:
        """
        Admin status change

        Business Rules:
        - Only transitions in ORDER_TRANSITIONS are allowed
        - Marking an order paid also marks its payment paid
        - The customer is emailed about the change
        """
        self._check_status_value(new_status)
        order = self._load(order_id)
        current = order["status"]

        if not can_transition(current, new_status):
            raise ConflictError(
                f"Cannot change order status from {current} to {new_status}",
                conflict_field="status",
            )

        fields = {"status": new_status}
        if new_status == OrderStatus.PAID.value:
            fields["payment_status"] = PaymentStatus.PAID.value

        if self.order_repo.update_status_if(order_id, current, fields) == 0:
            raise ConflictError(f"Order {order_id} was modified concurrently", conflict_field="status")

        if new_status == OrderStatus.CANCELLED.value:
            self.poller_registry.cancel(order_id)

        logger.info(f"Order {order_id} status {current} -> {new_status}")
        order = self._load(order_id)
        if new_status == OrderStatus.PAID.value:
            self.email_service.send_payment_confirmation(order)
        else:
            self.email_service.send_status_update(order)
        return order

    def order_stats(self) -> Dict[str, Any]:
        by_status = self.order_repo.count_by_status()
        by_payment = self.order_repo.count_by_payment_status()
        revenue = self.order_repo.paid_revenue()
        return {
            "total_orders": sum(by_status.values()),
            "by_status": {s.value: by_status.get(s.value, 0) for s in OrderStatus},
            "by_payment_status": {s.value: by_payment.get(s.value, 0) for s in PaymentStatus},
            "total_revenue": FormattingUtils.money(revenue),
            "total_revenue_display": FormattingUtils.format_ksh(revenue),
        }
