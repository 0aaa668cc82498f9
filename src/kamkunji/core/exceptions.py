from typing import Any, Dict, List, Optional


class BaseAPIException(Exception):
    """
    Root of every error the API renders itself.

    Subclasses set status_code and error_code at class level; message is
    what the client sees, internal_message what goes to the logs.
    """

    status_code = 500
    error_code = "INTERNAL_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None,
                 internal_message: Optional[str] = None):
        self.message = message
        self.internal_message = internal_message or message
        self.details = details or {}
        super().__init__(message)

    def add_detail(self, key: str, value: Any) -> "BaseAPIException":
        self.details = dict(self.details or {}, **{key: value})
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": False,
            "error": {"code": self.error_code, "message": self.message, "details": self.details},
        }


class ValidationError(BaseAPIException):
    """Bad input; field_errors is a list of {"field", "message"}"""

    status_code = 400
    error_code = "VALIDATION_ERROR"

    def __init__(self, message: str = "Validation failed",
                 field_errors: Optional[List[Dict[str, str]]] = None):
        super().__init__(message, {"field_errors": field_errors} if field_errors else None)


class NotFoundError(BaseAPIException):
    status_code = 404
    error_code = "NOT_FOUND"

    def __init__(self, resource: str = "Resource", resource_id: Optional[str] = None):
        suffix = f" with ID: {resource_id}" if resource_id else ""
        super().__init__(f"{resource} not found{suffix}")


class UnauthorizedError(BaseAPIException):
    status_code = 401
    error_code = "UNAUTHORIZED"

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


class ForbiddenError(BaseAPIException):
    status_code = 403
    error_code = "FORBIDDEN"

    def __init__(self, message: str = "Access forbidden"):
        super().__init__(message)


class ConflictError(BaseAPIException):
    """The request clashes with the current state (duplicates, illegal transitions)"""

    status_code = 409
    error_code = "CONFLICT"

    def __init__(self, message: str = "Resource conflict", conflict_field: Optional[str] = None):
        super().__init__(message, {"conflict_field": conflict_field} if conflict_field else None)


class BusinessLogicError(BaseAPIException):
    status_code = 422
    error_code = "BUSINESS_LOGIC_ERROR"

    def __init__(self, message: str, rule: Optional[str] = None):
        super().__init__(message, {"violated_rule": rule} if rule else None)


class ExternalServiceError(BaseAPIException):
    """A vendor API could not be reached or answered with a server error"""

    status_code = 503
    error_code = "EXTERNAL_SERVICE_ERROR"

    def __init__(self, service_name: str, message: str = "External service unavailable"):
        super().__init__(message, {"service": service_name})


class PaymentError(BaseAPIException):
    """The payment provider rejected a payment"""

    status_code = 400
    error_code = "PAYMENT_ERROR"
    default_message = "Payment failed. Please try again or contact support."

    def __init__(self, message: Optional[str] = None, provider_message: Optional[str] = None):
        super().__init__(
            message or self.default_message,
            {"provider_message": provider_message} if provider_message else None,
            internal_message=provider_message,
        )


class InvalidPhoneError(PaymentError):
    error_code = "INVALID_PHONE"
    default_message = "Invalid phone number. Please check and try again."


class InsufficientFundsError(PaymentError):
    error_code = "INSUFFICIENT_FUNDS"
    default_message = "Insufficient M-Pesa balance. Please top up and try again."


class PaymentTimeoutError(PaymentError):
    status_code = 408
    error_code = "PAYMENT_TIMEOUT"
    default_message = "Payment timeout. Please try again."


class PaymentCancelledError(PaymentError):
    error_code = "PAYMENT_CANCELLED"
    default_message = "Payment was cancelled. Please try again."


class DatabaseError(BaseAPIException):
    """Clients only ever see a generic message; the driver error goes to the logs"""

    error_code = "DATABASE_ERROR"

    def __init__(self, message: str = "Database operation failed", operation: Optional[str] = None):
        super().__init__(
            "An internal error occurred. Please try again later.",
            {"operation": operation} if operation else None,
            internal_message=message,
        )
