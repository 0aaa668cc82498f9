import base64

import pytest
import requests

from kamkunji.clients.daraja_client import DarajaClient
from kamkunji.clients.gateway import PAYMENT_FAILED, PAYMENT_PAID, PAYMENT_PENDING
from kamkunji.clients.lipia_client import LipiaClient
from kamkunji.clients.payment_errors import classify_provider_message, classify_result_code
from kamkunji.core.config import LipiaConfig, MpesaConfig
from kamkunji.core.exceptions import (
    BusinessLogicError,
    ExternalServiceError,
    InsufficientFundsError,
    InvalidPhoneError,
    PaymentCancelledError,
    PaymentError,
    PaymentTimeoutError,
    ValidationError,
)


class FakeResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self._payload = payload

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


class FakeSession:
    """Replays queued responses and records each request"""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def _next(self, method, url, **kwargs):
        self.requests.append({"method": method, "url": url, **kwargs})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def get(self, url, **kwargs):
        return self._next("GET", url, **kwargs)

    def post(self, url, **kwargs):
        return self._next("POST", url, **kwargs)


# ---- classification ---- #

@pytest.mark.parametrize("message,error_cls", [
    ("Invalid phone number format", InvalidPhoneError),
    ("Insufficient user balance", InsufficientFundsError),
    ("User took too long to pay", PaymentTimeoutError),
    ("Request cancelled by user", PaymentCancelledError),
])
def test_provider_messages_are_classified(message, error_cls):
    error = classify_provider_message(message)
    assert type(error) is error_cls
    assert error.details["provider_message"] == message


def test_unknown_provider_message_is_generic_payment_error():
    error = classify_provider_message("Something odd happened")
    assert type(error) is PaymentError
    assert error.message == "Something odd happened"
    assert error.status_code == 400


def test_timeout_error_uses_408():
    assert classify_provider_message("user took too long to pay").status_code == 408


@pytest.mark.parametrize("code,error_cls", [
    ("1", InsufficientFundsError),
    (1032, PaymentCancelledError),
    ("1037", PaymentTimeoutError),
    ("2001", PaymentError),
    ("9999", PaymentError),
])
def test_result_codes_are_classified(code, error_cls):
    assert type(classify_result_code(code, "desc")) is error_cls


def test_result_code_zero_is_success():
    assert classify_result_code("0") is None
    assert classify_result_code(0) is None


# ---- Lipia ---- #

def _lipia(session):
    return LipiaClient(LipiaConfig(base_url="https://lipia.test/api/", api_key="key-123", app_id="app-9"), session)


def test_lipia_stk_push_success():
    session = FakeSession(FakeResponse(200, {
        "message": "Payment successful",
        "data": {"reference": "REF-1", "CheckoutRequestID": "ws_CO_1", "amount": 1500, "phone": "0712345678"},
    }))

    result = _lipia(session).stk_push("0712345678", 1500, order_id=7)

    assert result.confirmed is True
    assert result.checkout_request_id == "ws_CO_1"
    assert result.reference == "REF-1"
    sent = session.requests[0]
    assert sent["url"] == "https://lipia.test/api/request/stk"
    assert sent["json"] == {"phone": "0712345678", "amount": "1500"}
    assert sent["headers"]["Authorization"] == "Bearer key-123"
    assert sent["headers"]["X-App-ID"] == "app-9"


def test_lipia_error_message_is_classified():
    session = FakeSession(FakeResponse(400, {"message": "Insufficient user balance"}))
    with pytest.raises(InsufficientFundsError):
        _lipia(session).stk_push("0712345678", 1500)


def test_lipia_server_error_without_message_is_external():
    session = FakeSession(FakeResponse(502))
    with pytest.raises(ExternalServiceError):
        _lipia(session).stk_push("0712345678", 1500)


def test_lipia_transport_error_is_external():
    session = FakeSession(requests.ConnectionError("down"))
    with pytest.raises(ExternalServiceError) as exc:
        _lipia(session).stk_push("0712345678", 1500)
    assert exc.value.status_code == 503


def test_lipia_requires_api_key():
    client = LipiaClient(LipiaConfig(api_key=""), FakeSession())
    with pytest.raises(ExternalServiceError):
        client.stk_push("0712345678", 10)


def test_lipia_has_no_status_query():
    assert LipiaClient.supports_status_query is False
    with pytest.raises(BusinessLogicError):
        _lipia(FakeSession()).query_status("ws_CO_1")


# ---- Daraja ---- #

class Clock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def _mpesa_config(**overrides):
    values = dict(
        consumer_key="ck",
        consumer_secret="cs",
        passkey="pk",
        shortcode="174379",
        callback_url="https://shop.test/api/v1/payments/callback",
        base_url="https://sandbox.test",
    )
    values.update(overrides)
    return MpesaConfig(**values)


def _token(expires_in="3599"):
    return FakeResponse(200, {"access_token": "tok-1", "expires_in": expires_in})


def test_daraja_token_is_cached_until_expiry():
    clock = Clock()
    session = FakeSession(_token(), FakeResponse(200, {"access_token": "tok-2", "expires_in": "3599"}))
    client = DarajaClient(_mpesa_config(), session, clock=clock)

    assert client.get_access_token() == "tok-1"
    clock.now += 3000
    assert client.get_access_token() == "tok-1"
    assert len(session.requests) == 1

    clock.now += 600
    assert client.get_access_token() == "tok-2"
    auth = session.requests[0]["headers"]["Authorization"]
    assert auth == "Basic " + base64.b64encode(b"ck:cs").decode()


def test_daraja_stk_push_body():
    session = FakeSession(_token(), FakeResponse(200, {
        "MerchantRequestID": "m-1",
        "CheckoutRequestID": "ws_CO_9",
        "ResponseCode": "0",
        "ResponseDescription": "Success. Request accepted for processing",
        "CustomerMessage": "Success. Request accepted for processing",
    }))
    client = DarajaClient(_mpesa_config(), session, clock=Clock())

    result = client.stk_push("0712345678", 1500, order_id=42)

    assert result.confirmed is False
    assert result.checkout_request_id == "ws_CO_9"
    body = session.requests[1]["json"]
    assert body["PartyA"] == body["PhoneNumber"] == "254712345678"
    assert body["Amount"] == 1500
    assert body["TransactionType"] == "CustomerPayBillOnline"
    assert body["AccountReference"] == "Order-42"
    assert body["CallBackURL"] == "https://shop.test/api/v1/payments/callback?orderId=42"
    assert len(body["Timestamp"]) == 14
    expected_password = base64.b64encode(f"174379pk{body['Timestamp']}".encode()).decode()
    assert body["Password"] == expected_password
    assert session.requests[1]["headers"]["Authorization"] == "Bearer tok-1"


def test_daraja_callback_url_keeps_existing_query():
    client = DarajaClient(_mpesa_config(callback_url="https://shop.test/cb?source=mpesa"), FakeSession())
    assert client.callback_url_for(5) == "https://shop.test/cb?source=mpesa&orderId=5"


def test_daraja_rejected_push_is_classified():
    session = FakeSession(_token(), FakeResponse(400, {
        "requestId": "r-1", "errorCode": "400.002.02", "errorMessage": "Bad Request - Invalid Phone Number",
    }))
    with pytest.raises(InvalidPhoneError):
        DarajaClient(_mpesa_config(), session, clock=Clock()).stk_push("0712345678", 10, 1)


def test_daraja_requires_configuration():
    client = DarajaClient(_mpesa_config(passkey=""), FakeSession())
    with pytest.raises(ExternalServiceError):
        client.stk_push("0712345678", 10, 1)


def test_daraja_query_still_processing_is_pending():
    session = FakeSession(_token(), FakeResponse(500, {
        "requestId": "r-2", "errorCode": "500.001.1001", "errorMessage": "The transaction is being processed",
    }))
    result = DarajaClient(_mpesa_config(), session, clock=Clock()).query_status("ws_CO_9")
    assert result.state == PAYMENT_PENDING
    assert not result.is_final


def test_daraja_query_paid_and_failed():
    session = FakeSession(
        _token(),
        FakeResponse(200, {"CheckoutRequestID": "ws_CO_9", "ResultCode": "0", "ResultDesc": "ok"}),
        FakeResponse(200, {"CheckoutRequestID": "ws_CO_9", "ResultCode": 1032, "ResultDesc": "cancelled"}),
    )
    client = DarajaClient(_mpesa_config(), session, clock=Clock())

    assert client.query_status("ws_CO_9").state == PAYMENT_PAID
    failed = client.query_status("ws_CO_9")
    assert failed.state == PAYMENT_FAILED
    assert isinstance(failed.error, PaymentCancelledError)
    # one token fetch for both queries
    assert [r["method"] for r in session.requests] == ["GET", "POST", "POST"]


def test_daraja_query_other_error_is_external():
    session = FakeSession(_token(), FakeResponse(400, {"errorCode": "400.002.02", "errorMessage": "Invalid"}))
    with pytest.raises(ExternalServiceError):
        DarajaClient(_mpesa_config(), session, clock=Clock()).query_status("ws_CO_9")


def test_parse_callback():
    payload = {"Body": {"stkCallback": {
        "MerchantRequestID": "m-1",
        "CheckoutRequestID": "ws_CO_9",
        "ResultCode": 0,
        "ResultDesc": "The service request is processed successfully.",
        "CallbackMetadata": {"Item": [
            {"Name": "Amount", "Value": 1500},
            {"Name": "MpesaReceiptNumber", "Value": "NLJ7RT61SV"},
            {"Name": "PhoneNumber", "Value": 254712345678},
        ]},
    }}}
    callback = DarajaClient.parse_callback(payload).callback
    assert callback.result_code == "0"
    assert callback.receipt_number == "NLJ7RT61SV"
    assert callback.metadata_dict()["Amount"] == 1500


def test_parse_callback_rejects_malformed_body():
    with pytest.raises(ValidationError):
        DarajaClient.parse_callback({"Body": {}})
