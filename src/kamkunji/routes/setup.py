import hmac
import logging

from flask import Blueprint, request

from kamkunji.core.config import Config
from kamkunji.core.dependencies import get_service
from kamkunji.core.exceptions import ForbiddenError, UnauthorizedError
from kamkunji.repositories.category_repository import CategoryRepository
from kamkunji.routes.schemas import AdminSetupSchema
from kamkunji.routes.utils import load_body, success_response
from kamkunji.seed import initialize_database
from kamkunji.services.user_service import UserService

logger = logging.getLogger(__name__)

setup_bp = Blueprint("setup", __name__)

_admin_schema = AdminSetupSchema()


def _check_setup_token() -> None:
    """Setup endpoints need X-Setup-Token to match ADMIN_SETUP_TOKEN; unset disables them."""
    expected = get_service(Config).security.admin_setup_token
    if not expected:
        raise ForbiddenError("Setup endpoints are disabled")
    supplied = request.headers.get("X-Setup-Token", "")
    if not hmac.compare_digest(supplied.encode(), expected.encode()):
        logger.warning("Rejected setup request with a bad token")
        raise UnauthorizedError("Invalid setup token")


@setup_bp.route("/db-init", methods=["POST"])
def db_init():
    _check_setup_token()
    summary = initialize_database(
        get_service(CategoryRepository),
        get_service(UserService),
        get_service(Config).security,
        create_tables=True,
    )
    return success_response(summary, message="Database initialised")


@setup_bp.route("/admin", methods=["POST"])
def create_admin():
    """Create the admin account, or return the existing one."""
    _check_setup_token()
    body = load_body(_admin_schema)
    user, created = get_service(UserService).create_admin(body["email"], body["full_name"], body["password"])
    return success_response(
        {"user": user, "created": created},
        message="Admin created" if created else "Admin already exists",
        status=201 if created else 200,
    )
