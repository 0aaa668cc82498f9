from typing import Any, Dict, Optional

from flask import abort, g, jsonify, request
from marshmallow import Schema, ValidationError as MarshmallowValidationError

from kamkunji.core.dependencies import get_service
from kamkunji.core.exceptions import ValidationError
from kamkunji.services.user_service import UserService
from kamkunji.utils.date_utils import DateUtils


def success_response(data, message: Optional[str] = None, status: int = 200):
    """{"success": true, "data", "timestamp", "request_id"} plus an optional message"""
    body = dict(success=True, data=data, timestamp=DateUtils.now_utc().isoformat(),
                request_id=getattr(g, "request_id", None))
    if message:
        body["message"] = message
    return jsonify(body), status


def parse_int(
    v,
    default=None,
    min_val: Optional[int] = None,
    max_val: Optional[int] = None,
    field_name: str = "value",
) -> Optional[int]:
    """Query-string integer; blank gives default, bad or out-of-range values abort with 400"""
    if v is None or v == "":
        return default
    try:
        number = int(v)
    except (TypeError, ValueError):
        abort(400, f"Invalid {field_name}: expected an integer")
    if min_val is not None and number < min_val:
        abort(400, f"{field_name} must be at least {min_val}")
    if max_val is not None and number > max_val:
        abort(400, f"{field_name} must be at most {max_val}")
    return number


_TRUTHY = frozenset({"1", "true", "t", "yes", "y", "on"})


def parse_bool(v, default: bool = False) -> bool:
    if v is None:
        return default
    return v if isinstance(v, bool) else str(v).strip().lower() in _TRUTHY


def parse_page(default_limit: int = 20, max_limit: int = 100):
    """(limit, offset) from the query string."""
    limit = parse_int(request.args.get("limit"), default=default_limit, min_val=1,
                      max_val=max_limit, field_name="limit")
    offset = parse_int(request.args.get("offset"), default=0, min_val=0, field_name="offset")
    return limit, offset


def optional_user_id() -> Optional[int]:
    uid = request.headers.get("X-User-Id")
    if not uid:
        return None
    try:
        user_id = int(uid)
    except ValueError:
        abort(400, "Invalid X-User-Id header: must be a positive integer.")
    if user_id <= 0:
        abort(400, "User ID must be a positive integer.")
    return user_id


def get_current_user_id() -> int:
    """Extract and validate user ID from X-User-Id request header."""
    user_id = optional_user_id()
    if user_id is None:
        abort(401, "Missing X-User-Id header.")
    return user_id


def require_admin() -> Dict[str, Any]:
    """The calling user, who must have the admin role (403 otherwise)."""
    return get_service(UserService).require_admin(get_current_user_id())


def load_body(schema: Schema) -> Dict[str, Any]:
    """Validate the JSON body against a marshmallow schema."""
    payload = request.get_json(silent=True)
    if payload is None:
        payload = {}
    try:
        return schema.load(payload)
    except MarshmallowValidationError as err:
        messages = err.messages if isinstance(err.messages, dict) else {"_schema": err.messages}
        raise ValidationError(
            "Invalid request body",
            field_errors=[
                {"field": field, "message": "; ".join(map(str, msgs)) if isinstance(msgs, list) else str(msgs)}
                for field, msgs in messages.items()
            ],
        )
