import re
from typing import Optional

from email_validator import validate_email, EmailNotValidError

from kamkunji.core.exceptions import ValidationError


class ValidationUtils:
    """
    Validation utilities for Kenyan storefront data

    Features:
    - Safaricom phone number validation and MSISDN conversion
    - Email validation via email-validator
    - Input sanitization
    """

    PATTERNS = {
        # Checkout form format: 07XXXXXXXX, ASCII digits only
        'phone_local': re.compile(r'07[0-9]{8}'),
        # Anything Daraja can be given once normalised to 2547XXXXXXXX / 2541XXXXXXXX
        'msisdn': re.compile(r'254[17][0-9]{8}'),
        'url': re.compile(r'^https?://[^\s<>"{}|\\^`[\]]+$'),
    }

    MIN_PASSWORD_LENGTH = 8
    MAX_PASSWORD_LENGTH = 128
    MAX_TEXT_LENGTH = 2000
    MAX_NAME_LENGTH = 200

    @classmethod
    def validate_phone_number(cls, phone) -> bool:
        """True exactly for strings of the form 07XXXXXXXX"""
        if not isinstance(phone, str):
            return False
        return cls.PATTERNS['phone_local'].fullmatch(phone) is not None

    @classmethod
    def format_phone_number(cls, phone: str) -> str:
        """0712345678 -> "0712 345 678"; anything else is returned unchanged"""
        if cls.validate_phone_number(phone):
            return f"{phone[:4]} {phone[4:7]} {phone[7:]}"
        return phone

    @classmethod
    def to_msisdn(cls, phone: str) -> str:
        """
        Normalise a Kenyan mobile number to the 2547XXXXXXXX form Daraja expects

        Accepts 07.., 01.., 7.., +254.. and 254.. with spaces or dashes.
        """
        digits = re.sub(r'[\s\-()]', '', phone or '')
        if digits.startswith('+'):
            digits = digits[1:]
        if digits.startswith('0'):
            digits = '254' + digits[1:]
        elif len(digits) == 9 and digits[0] in '17':
            digits = '254' + digits

        if cls.PATTERNS['msisdn'].fullmatch(digits) is None:
            raise ValidationError(
                "Please enter a valid Kenyan phone number",
                field_errors=[{"field": "phone", "message": "Expected 07XXXXXXXX or 2547XXXXXXXX"}],
            )
        return digits

    @classmethod
    def mask_phone(cls, phone: Optional[str]) -> str:
        """Keep the first 4 and last 2 digits for log lines"""
        if not phone or len(phone) < 7:
            return "***"
        return f"{phone[:4]}{'*' * (len(phone) - 6)}{phone[-2:]}"

    @classmethod
    def validate_email(cls, email: str) -> bool:
        try:
            validate_email(email, check_deliverability=False)
            return True
        except EmailNotValidError:
            return False

    @classmethod
    def normalize_email(cls, email: str) -> str:
        """Normalize email address for consistent storage"""
        try:
            validated = validate_email(email, check_deliverability=False)
            return validated.normalized.lower()
        except EmailNotValidError:
            raise ValidationError(
                f"Invalid email address: {email}",
                field_errors=[{"field": "email", "message": "Invalid email address"}],
            )

    @classmethod
    def validate_password(cls, password: str) -> None:
        if not isinstance(password, str) or not (
            cls.MIN_PASSWORD_LENGTH <= len(password) <= cls.MAX_PASSWORD_LENGTH
        ):
            raise ValidationError(
                f"Password must be between {cls.MIN_PASSWORD_LENGTH} and "
                f"{cls.MAX_PASSWORD_LENGTH} characters"
            )

    @classmethod
    def validate_url(cls, url: str) -> bool:
        """Basic URL validation"""
        return cls.PATTERNS['url'].match(url) is not None

    @classmethod
    def sanitize_text(cls, text: Optional[str], max_length: Optional[int] = None) -> Optional[str]:
        """
        Sanitize text input for safe storage and display

        - Strips whitespace
        - Removes control characters except newlines and tabs
        - Enforces length limits
        """
        if text is None:
            return None
        if not isinstance(text, str):
            text = str(text)

        sanitized = text.strip()
        sanitized = re.sub(r'[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]', '', sanitized)

        if max_length:
            sanitized = sanitized[:max_length]

        return sanitized
