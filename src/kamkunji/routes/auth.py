import logging

from flask import Blueprint

from kamkunji.core.dependencies import get_service
from kamkunji.routes.schemas import LoginSchema, SignupSchema
from kamkunji.routes.utils import get_current_user_id, load_body, success_response
from kamkunji.services.user_service import UserService

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth", __name__)

_signup_schema = SignupSchema()
_login_schema = LoginSchema()


@auth_bp.route("/signup", methods=["POST"])
def signup():
    body = load_body(_signup_schema)
    user = get_service(UserService).signup(
        body["email"], body["password"], body["full_name"], body.get("phone")
    )
    return success_response(user, message="Account created", status=201)


@auth_bp.route("/login", methods=["POST"])
def login():
    """Check credentials; clients send the returned id as X-User-Id."""
    body = load_body(_login_schema)
    user = get_service(UserService).authenticate(body["email"], body["password"])
    return success_response(user)


@auth_bp.route("/me", methods=["GET"])
def me():
    return success_response(get_service(UserService).get_user(get_current_user_id()))
