import threading

import pytest
import resend

from kamkunji.clients.email_client import ResendEmailClient
from kamkunji.core.config import EmailConfig
from kamkunji.core.exceptions import ExternalServiceError
from kamkunji.repositories.email_log_repository import EmailLogRepository
from kamkunji.services.email_service import EmailService


def _order(**overrides):
    order = {
        "id": 42,
        "user_id": None,
        "full_name": "Wanjiku <b>Kamau</b>",
        "email": "wanjiku@kamkunji.co.ke",
        "status": "shipped",
        "total_display": "KSh 2,400",
        "payment_reference": None,
        "shipping_address": {"address": "Moi Avenue", "city": "Nairobi"},
        "items": [{"quantity": 2, "product_name": "Mug", "price_display": "KSh 1,200"}],
    }
    order.update(overrides)
    return order


def test_send_email_logs_success(service, email_client):
    result = service(EmailService).send_email(
        "buyer@kamkunji.co.ke", "Hello", text="Karibu <friend>", metadata={"type": "manual"}
    )

    assert result["id"] == "msg_1"
    assert result["status"] == "sent"
    assert email_client.sent[0]["html"] == "<p>Karibu &lt;friend&gt;</p>"

    log = service(EmailLogRepository).list_recent()[0]
    assert log["id"] == result["log_id"]
    assert log["to_email"] == "buyer@kamkunji.co.ke"
    assert log["metadata"] == {"type": "manual", "message_id": "msg_1"}


def test_send_email_failure_is_logged_then_raised(service, email_client):
    email_client.error = ExternalServiceError("resend", "Failed to send email")

    with pytest.raises(ExternalServiceError):
        service(EmailService).send_email("buyer@kamkunji.co.ke", "Hello", text="hi")

    log = service(EmailLogRepository).list_recent()[0]
    assert log["status"] == "failed"
    assert log["metadata"]["error"] == "Failed to send email"


def test_status_update_renders_escaped_html(service, email_client):
    assert service(EmailService).send_status_update(_order()) is True

    sent = email_client.sent[0]
    assert sent["subject"] == "Order Status Update - Order #42"
    assert "Wanjiku &lt;b&gt;Kamau&lt;/b&gt;" in sent["html"]
    assert "on its way" in sent["html"]
    assert "Moi Avenue, Nairobi" in sent["html"]
    assert "Status: Shipped" in sent["text"]


def test_unknown_status_gets_generic_message(service, email_client):
    service(EmailService).send_status_update(_order(status="paid"))
    assert "Your order status has been updated." in email_client.sent[0]["text"]


def test_notification_failure_returns_false(service, email_client):
    email_client.error = ExternalServiceError("resend")
    assert service(EmailService).send_payment_confirmation(_order(status="paid")) is False
    assert service(EmailLogRepository).list_recent()[0]["metadata"]["order_id"] == 42


def test_confirmation_lists_items_and_receipt(service, email_client):
    service(EmailService).send_payment_confirmation(_order(status="paid", payment_reference="NLJ7RT61SV"))
    sent = email_client.sent[0]
    assert "2x Mug" in sent["html"]
    assert "NLJ7RT61SV" in sent["html"]
    assert "Total Amount: KSh 2,400" in sent["text"]


# ---- HTTP ---- #

def test_email_endpoint_requires_admin(client, make_user, email_client):
    body = {"to": "buyer@kamkunji.co.ke", "subject": "Hi", "text": "Hello"}

    assert client.post("/api/v1/emails", json=body).status_code == 401
    forbidden = client.post("/api/v1/emails", json=body, headers={"X-User-Id": str(make_user())})
    assert forbidden.status_code == 403
    assert email_client.sent == []


def test_email_endpoint_sends(client, admin_headers, email_client):
    response = client.post(
        "/api/v1/emails",
        json={"to": "buyer@kamkunji.co.ke", "subject": "Hi", "text": "Hello", "html": "<h1>Hello</h1>"},
        headers=admin_headers,
    )

    assert response.status_code == 200
    assert response.get_json()["data"]["id"] == "msg_1"
    assert email_client.sent[0]["html"] == "<h1>Hello</h1>"


def test_email_endpoint_validates(client, admin_headers):
    response = client.post("/api/v1/emails", json={"to": "not-an-email", "subject": "Hi"}, headers=admin_headers)
    assert response.status_code == 400
    fields = {e["field"] for e in response.get_json()["error"]["details"]["field_errors"]}
    assert fields == {"to", "text"}


def test_email_provider_outage_is_503(client, admin_headers, email_client):
    email_client.error = ExternalServiceError("resend", "Failed to send email")
    response = client.post(
        "/api/v1/emails", json={"to": "buyer@kamkunji.co.ke", "subject": "Hi", "text": "x"}, headers=admin_headers
    )
    assert response.status_code == 503
    assert response.get_json()["error"]["code"] == "EXTERNAL_SERVICE_ERROR"


def test_resend_client_key_stays_set_across_overlapping_sends(monkeypatch):
    monkeypatch.setattr(resend, "api_key", None)
    first_done = threading.Event()
    seen = []

    def fake_send(params):
        if params["subject"] == "slow":
            first_done.wait(timeout=5)
        seen.append((params["subject"], resend.api_key))
        return {"id": f"msg_{params['subject']}"}

    monkeypatch.setattr(resend.Emails, "send", fake_send)
    client = ResendEmailClient(EmailConfig(resend_api_key="re_key"))

    slow = threading.Thread(target=client.send, args=("a@kamkunji.co.ke", "slow", "<p>a</p>"))
    slow.start()
    assert client.send("b@kamkunji.co.ke", "fast", "<p>b</p>") == "msg_fast"
    first_done.set()
    slow.join(timeout=5)

    assert sorted(seen) == [("fast", "re_key"), ("slow", "re_key")]
