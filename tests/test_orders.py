import pytest

from kamkunji.clients.gateway import PAYMENT_FAILED, PAYMENT_PAID, PaymentQueryResult
from kamkunji.core.exceptions import (
    BusinessLogicError,
    ConflictError,
    InsufficientFundsError,
    NotFoundError,
    PaymentCancelledError,
    ValidationError,
)
from kamkunji.models.order import can_transition
from kamkunji.repositories.email_log_repository import EmailLogRepository
from kamkunji.services.cart_service import CartService
from kamkunji.services.order_service import OrderService


@pytest.fixture
def cart_ready(make_user, make_product, fill_cart):
    """A user with two units of a KSh 1,500 item in the cart"""
    user = make_user()
    product = make_product(name="Radio", price="1500.00", stock=3)
    fill_cart(user, (product, 2))
    return user, product


def _callback(checkout_request_id, result_code=0, receipt="NLJ7RT61SV"):
    stk = {
        "MerchantRequestID": "m-1",
        "CheckoutRequestID": checkout_request_id,
        "ResultCode": result_code,
        "ResultDesc": "done",
    }
    if result_code == 0:
        stk["CallbackMetadata"] = {"Item": [
            {"Name": "Amount", "Value": 3000},
            {"Name": "MpesaReceiptNumber", "Value": receipt},
        ]}
    return {"Body": {"stkCallback": stk}}


def test_empty_cart_blocked_before_any_network_call(service, make_user, gateway, shipping):
    with pytest.raises(BusinessLogicError) as exc:
        service(OrderService).checkout(make_user(), shipping)
    assert exc.value.details == {"violated_rule": "empty_cart"}
    assert gateway.calls == []


def test_empty_cart_checked_before_shipping(service, make_user, gateway):
    with pytest.raises(BusinessLogicError):
        service(OrderService).checkout(make_user(), {})
    assert gateway.calls == []


def test_checkout_with_synchronous_gateway_marks_paid(service, cart_ready, gateway, email_client, shipping):
    user, product = cart_ready

    result = service(OrderService).checkout(user, shipping)

    order = result["order"]
    assert order["status"] == "paid"
    assert order["payment_status"] == "paid"
    assert order["total_amount"] == 3000.0
    assert order["checkout_request_id"] == "ws_CO_TEST_1"
    assert order["shipping_address"]["city"] == "Nairobi"
    assert order["items"][0]["product_name"] == "Radio"
    assert order["items"][0]["quantity"] == 2
    assert result["payment"]["status"] == "success"

    assert gateway.calls == [{"phone": "0712345678", "amount": 3000, "order_id": order["id"]}]
    assert service(CartService).count(user) == 0

    assert [m["subject"] for m in email_client.sent] == [f"Payment Confirmed - Order #{order['id']}"]
    assert "KSh 3,000" in email_client.sent[0]["html"]
    logs = service(EmailLogRepository).list_recent()
    assert logs[0]["status"] == "sent"
    assert logs[0]["metadata"]["order_id"] == order["id"]


def test_invalid_shipping_rejected(service, cart_ready, gateway, shipping):
    user, _ = cart_ready
    shipping["phone"] = "+254712345678"
    with pytest.raises(ValidationError):
        service(OrderService).checkout(user, shipping)

    del shipping["city"]
    with pytest.raises(ValidationError) as exc:
        service(OrderService).checkout(user, shipping)
    assert {"field": "city", "message": "This field is required"} in exc.value.details["field_errors"]
    assert gateway.calls == []


def test_cart_of_only_pulled_products_cannot_be_ordered(service, cart_ready, gateway, shipping):
    from kamkunji.repositories.product_repository import ProductRepository

    user, product = cart_ready
    service(ProductRepository).update_status(product, "rejected")

    with pytest.raises(BusinessLogicError) as exc:
        service(OrderService).checkout(user, shipping)
    assert exc.value.details == {"violated_rule": "cart_items_unavailable"}
    assert gateway.calls == []
    assert service(OrderService).list_orders(user) == []


def test_pulled_product_is_listed_in_cart_and_skipped_at_checkout(service, make_user, make_product,
                                                                  fill_cart, gateway, shipping):
    from kamkunji.repositories.product_repository import ProductRepository

    user = make_user()
    kept = make_product(name="Kettle", price="800.00", stock=2)
    pulled = make_product(name="Sofa", price="9000.00", stock=1)
    fill_cart(user, (kept, 2), (pulled, 1))
    service(ProductRepository).update_status(pulled, "rejected")

    view = service(CartService).get_cart(user)
    assert [i["product_id"] for i in view["items"]] == [kept]
    assert view["total"] == 1600.0
    assert [(i["product_id"], i["available"]) for i in view["unavailable_items"]] == [(pulled, False)]

    order = service(OrderService).checkout(user, shipping)["order"]

    assert [line["product_name"] for line in order["items"]] == ["Kettle"]
    assert order["total_amount"] == 1600.0
    assert gateway.calls[0]["amount"] == 1600
    assert service(CartService).get_cart(user)["unavailable_items"] == []


def test_line_exceeding_stock_blocks_checkout(service, make_user, make_product, fill_cart, gateway, shipping):
    user = make_user()
    fill_cart(user, (make_product(name="Radio", stock=1), 2))

    with pytest.raises(BusinessLogicError) as exc:
        service(OrderService).checkout(user, shipping)
    assert "Radio" in exc.value.message
    assert gateway.calls == []


def test_failed_stk_push_leaves_order_retryable(service, cart_ready, gateway, email_client, shipping):
    user, _ = cart_ready
    gateway.error = InsufficientFundsError(provider_message="Insufficient user balance")

    with pytest.raises(InsufficientFundsError) as exc:
        service(OrderService).checkout(user, shipping)

    order_id = exc.value.details["order_id"]
    order = service(OrderService).get_order(order_id, user)
    assert order["status"] == "pending_payment"
    assert order["payment_status"] == "failed"
    assert email_client.sent == []

    gateway.error = None
    retried = service(OrderService).retry_payment(order_id, user)
    assert retried["order"]["status"] == "paid"
    assert len(gateway.calls) == 2

    with pytest.raises(ConflictError):
        service(OrderService).retry_payment(order_id, user)


def test_gateway_outage_reports_order_id_alongside_own_details(service, cart_ready, gateway, shipping):
    from kamkunji.core.exceptions import ExternalServiceError

    user, _ = cart_ready
    outage = ExternalServiceError("lipia", "Payment service unavailable")
    outage.details = None
    gateway.error = outage

    with pytest.raises(ExternalServiceError) as exc:
        service(OrderService).checkout(user, shipping)

    order_id = exc.value.details["order_id"]
    assert service(OrderService).get_order(order_id, user)["payment_status"] == "failed"

    gateway.error = ExternalServiceError("lipia", "Payment service unavailable")
    with pytest.raises(ExternalServiceError) as exc:
        service(OrderService).retry_payment(order_id, user)
    assert exc.value.details == {"service": "lipia", "order_id": order_id}


def test_async_gateway_status_check(service, cart_ready, gateway, shipping):
    user, _ = cart_ready
    gateway.confirmed = False
    gateway.supports_status_query = True

    order = service(OrderService).checkout(user, shipping)["order"]
    assert order["status"] == "pending_payment"
    assert order["payment_status"] == "pending"

    pending = service(OrderService).check_payment_status(order["id"], user)
    assert pending["payment_status"] == "pending"
    assert "check your phone" in pending["message"]

    gateway.query_result = PaymentQueryResult(PAYMENT_PAID, "0", "ok")
    paid = service(OrderService).check_payment_status(order["id"], user)
    assert paid["status"] == "paid"
    assert paid["payment_status"] == "paid"
    assert gateway.queries == ["ws_CO_TEST_1", "ws_CO_TEST_1"]


def test_cancelled_prompt_reported(service, cart_ready, gateway, shipping):
    user, _ = cart_ready
    gateway.confirmed = False
    gateway.supports_status_query = True
    order = service(OrderService).checkout(user, shipping)["order"]

    gateway.query_result = PaymentQueryResult(PAYMENT_FAILED, "1032", "cancelled", PaymentCancelledError())
    status = service(OrderService).check_payment_status(order["id"], user)

    assert status["payment_status"] == "failed"
    assert status["message"] == "Payment was cancelled. Please try again."


def test_callback_confirms_payment_once(service, cart_ready, gateway, email_client, shipping):
    user, _ = cart_ready
    gateway.confirmed = False
    orders = service(OrderService)
    order = orders.checkout(user, shipping)["order"]

    paid = orders.handle_payment_callback(_callback(order["checkout_request_id"]))
    assert paid["status"] == "paid"
    assert paid["payment_reference"] == "NLJ7RT61SV"

    again = orders.handle_payment_callback(_callback(order["checkout_request_id"]))
    assert again["status"] == "paid"
    assert len(email_client.sent) == 1


def test_callback_failure_marks_payment_failed(service, cart_ready, gateway, shipping):
    user, _ = cart_ready
    gateway.confirmed = False
    order = service(OrderService).checkout(user, shipping)["order"]

    failed = service(OrderService).handle_payment_callback(_callback(order["checkout_request_id"], 1032))
    assert failed["status"] == "pending_payment"
    assert failed["payment_status"] == "failed"


def test_callback_for_unknown_order(service):
    with pytest.raises(NotFoundError):
        service(OrderService).handle_payment_callback(_callback("ws_CO_UNKNOWN"))


def test_order_lifecycle_table():
    assert can_transition("pending_payment", "paid")
    assert can_transition("paid", "processing")
    assert can_transition("processing", "shipped")
    assert can_transition("shipped", "delivered")
    assert can_transition("processing", "cancelled")
    assert not can_transition("shipped", "cancelled")
    assert not can_transition("pending_payment", "shipped")
    assert not can_transition("delivered", "processing")
    assert not can_transition("cancelled", "paid")
    assert not can_transition("paid", "refunded")


def test_update_status_enforces_lifecycle_and_emails(service, cart_ready, email_client, shipping):
    user, _ = cart_ready
    orders = service(OrderService)
    order_id = orders.checkout(user, shipping)["order"]["id"]

    assert orders.update_status(order_id, "processing")["status"] == "processing"
    assert email_client.sent[-1]["subject"] == f"Order Status Update - Order #{order_id}"
    assert "being processed" in email_client.sent[-1]["text"]

    with pytest.raises(ConflictError):
        orders.update_status(order_id, "delivered")
    with pytest.raises(ValidationError):
        orders.update_status(order_id, "lost")

    orders.update_status(order_id, "shipped")
    orders.update_status(order_id, "delivered")
    with pytest.raises(ConflictError):
        orders.update_status(order_id, "cancelled")


def test_email_failure_does_not_undo_status_change(service, cart_ready, email_client, shipping):
    from kamkunji.core.exceptions import ExternalServiceError

    user, _ = cart_ready
    orders = service(OrderService)
    order_id = orders.checkout(user, shipping)["order"]["id"]

    email_client.error = ExternalServiceError("resend", "Failed to send email")
    assert orders.update_status(order_id, "processing")["status"] == "processing"
    assert service(EmailLogRepository).list_recent()[0]["status"] == "failed"


def test_orders_are_private_to_their_customer(service, cart_ready, make_user, shipping):
    user, _ = cart_ready
    order_id = service(OrderService).checkout(user, shipping)["order"]["id"]
    with pytest.raises(NotFoundError):
        service(OrderService).get_order(order_id, make_user())


def test_admin_search_and_stats(service, cart_ready, shipping):
    user, _ = cart_ready
    orders = service(OrderService)
    order_id = orders.checkout(user, shipping)["order"]["id"]

    assert [o["id"] for o in orders.admin_list_orders(search="wanjiku@")] == [order_id]
    assert [o["id"] for o in orders.admin_list_orders(search=str(order_id))] == [order_id]
    assert orders.admin_list_orders(search="nobody") == []
    assert orders.admin_list_orders(status="shipped") == []
    with pytest.raises(ValidationError):
        orders.admin_list_orders(start_date="yesterday")

    stats = orders.order_stats()
    assert stats["total_orders"] == 1
    assert stats["by_status"]["paid"] == 1
    assert stats["total_revenue"] == 3000.0


# ---- HTTP ---- #

def test_checkout_endpoint_empty_cart(client, make_user, gateway, shipping):
    response = client.post("/api/v1/orders/checkout", json=shipping, headers={"X-User-Id": str(make_user())})
    assert response.status_code == 422
    assert response.get_json()["error"]["code"] == "BUSINESS_LOGIC_ERROR"
    assert gateway.calls == []


def test_checkout_endpoint(client, cart_ready, shipping):
    user, _ = cart_ready
    headers = {"X-User-Id": str(user)}

    response = client.post("/api/v1/orders/checkout", json=shipping, headers=headers)

    assert response.status_code == 201
    body = response.get_json()
    order_id = body["data"]["order"]["id"]
    assert body["message"] == "Payment successful! Your order has been confirmed."

    listed = client.get("/api/v1/orders", headers=headers).get_json()["data"]["orders"]
    assert [o["id"] for o in listed] == [order_id]

    status = client.get(f"/api/v1/orders/{order_id}/payment-status", headers=headers).get_json()["data"]
    assert status["payment_status"] == "paid"


def test_checkout_endpoint_payment_error(client, cart_ready, gateway, shipping):
    user, _ = cart_ready
    gateway.error = InsufficientFundsError()

    response = client.post("/api/v1/orders/checkout", json=shipping, headers={"X-User-Id": str(user)})

    assert response.status_code == 400
    error = response.get_json()["error"]
    assert error["code"] == "INSUFFICIENT_FUNDS"
    assert "order_id" in error["details"]


def test_callback_endpoint(client, service, cart_ready, gateway, shipping):
    user, _ = cart_ready
    gateway.confirmed = False
    order = service(OrderService).checkout(user, shipping)["order"]

    response = client.post(
        f"/api/v1/payments/callback?orderId={order['id']}", json=_callback(order["checkout_request_id"])
    )

    assert response.status_code == 200
    assert response.get_json() == {"ResultCode": 0, "ResultDesc": "Accepted"}
    assert service(OrderService).get_order(order["id"])["status"] == "paid"


def test_callback_with_unknown_checkout_id_cannot_settle_an_order(client, service, cart_ready, gateway,
                                                                   email_client, shipping):
    user, _ = cart_ready
    gateway.confirmed = False
    order = service(OrderService).checkout(user, shipping)["order"]

    response = client.post(
        f"/api/v1/payments/callback?orderId={order['id']}", json=_callback("ws_CO_FORGED", receipt="FAKE")
    )

    assert response.status_code == 404
    stored = service(OrderService).get_order(order["id"])
    assert stored["status"] == "pending_payment"
    assert stored["payment_reference"] != "FAKE"
    assert email_client.sent == []


def test_callback_order_id_must_match_checkout_id(service, make_user, make_product, fill_cart,
                                                  gateway, shipping):
    gateway.confirmed = False
    orders = service(OrderService)
    placed = []
    for _ in range(2):
        user = make_user()
        fill_cart(user, (make_product(), 1))
        placed.append(orders.checkout(user, shipping)["order"])
    first, second = placed

    with pytest.raises(NotFoundError):
        orders.handle_payment_callback(_callback(first["checkout_request_id"]), order_id=second["id"])

    assert orders.get_order(first["id"])["status"] == "pending_payment"
    assert orders.get_order(second["id"])["status"] == "pending_payment"


def test_callback_endpoint_rejects_garbage(client):
    response = client.post("/api/v1/payments/callback", json={"hello": "world"})
    assert response.status_code == 400


def test_initiate_payment_endpoint(client, gateway):
    response = client.post("/api/v1/payments", json={"phone": "0712345678", "amount": "99.6"})
    assert response.status_code == 200
    data = response.get_json()["data"]
    assert data["CheckoutRequestID"] == "ws_CO_TEST_1"
    assert data["amount"] == 100
    assert gateway.calls[0]["amount"] == 100

    bad = client.post("/api/v1/payments", json={"phone": "12345", "amount": 10})
    assert bad.status_code == 400
    assert len(gateway.calls) == 1
