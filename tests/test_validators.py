import pytest

from kamkunji.core.exceptions import ValidationError
from kamkunji.services.payment_service import PaymentService
from kamkunji.utils.validators import ValidationUtils


@pytest.mark.parametrize("phone", ["0712345678", "0798765432", "0700000000"])
def test_valid_local_phone_numbers(phone):
    assert PaymentService.validate_phone_number(phone)


@pytest.mark.parametrize("phone", [
    "712345678",
    "07123456789",
    "071234567",
    "0812345678",
    "254712345678",
    "+254712345678",
    "0712 345 678",
    "07123456a8",
    "",
    None,
    712345678,
])
def test_invalid_local_phone_numbers(phone):
    assert not PaymentService.validate_phone_number(phone)


def test_format_phone_number():
    assert PaymentService.format_phone_number("0712345678") == "0712 345 678"
    assert PaymentService.format_phone_number("12345") == "12345"


@pytest.mark.parametrize("raw,expected", [
    ("0712345678", "254712345678"),
    ("+254712345678", "254712345678"),
    ("254 712 345 678", "254712345678"),
    ("712345678", "254712345678"),
    ("0110123456", "254110123456"),
])
def test_to_msisdn(raw, expected):
    assert ValidationUtils.to_msisdn(raw) == expected


def test_to_msisdn_rejects_non_kenyan_numbers():
    with pytest.raises(ValidationError):
        ValidationUtils.to_msisdn("0912345678")


def test_mask_phone_hides_middle_digits():
    assert ValidationUtils.mask_phone("0712345678") == "0712****78"
    assert ValidationUtils.mask_phone(None) == "***"


def test_normalize_email():
    assert ValidationUtils.normalize_email("Wanjiku@Kamkunji.co.ke") == "wanjiku@kamkunji.co.ke"
    with pytest.raises(ValidationError):
        ValidationUtils.normalize_email("not-an-email")


def test_sanitize_text_strips_control_characters():
    assert ValidationUtils.sanitize_text("  sofa\x00 set\x07  ") == "sofa set"
    assert ValidationUtils.sanitize_text("abcdef", 3) == "abc"
    assert ValidationUtils.sanitize_text(None) is None


def test_password_length_rules():
    ValidationUtils.validate_password("long-enough")
    with pytest.raises(ValidationError):
        ValidationUtils.validate_password("short")


def test_payment_status_messages():
    assert "check your phone" in PaymentService.get_payment_status_message("processing")
    assert PaymentService.get_payment_status_message("success").startswith("Payment successful")
    assert PaymentService.get_payment_status_message("nonsense") == "Payment status unknown."
