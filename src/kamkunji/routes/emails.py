from flask import Blueprint

from kamkunji.core.dependencies import get_service
from kamkunji.routes.schemas import EmailSchema
from kamkunji.routes.utils import load_body, require_admin, success_response
from kamkunji.services.email_service import EmailService

emails_bp = Blueprint("emails", __name__)

_email_schema = EmailSchema()


@emails_bp.route("", methods=["POST"])
def send_email():
    """Admin-only passthrough to the email provider; html defaults to the escaped text."""
    admin = require_admin()
    body = load_body(_email_schema)
    result = get_service(EmailService).send_email(
        body["to"],
        body["subject"],
        text=body["text"],
        html_body=body.get("html"),
        metadata={"type": "manual", "sent_by": admin["id"]},
    )
    return success_response(result, message="Email sent")
