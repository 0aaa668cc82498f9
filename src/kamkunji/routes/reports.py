from flask import Blueprint

from kamkunji.core.dependencies import get_service
from kamkunji.routes.schemas import ReportSchema
from kamkunji.routes.utils import load_body, optional_user_id, success_response
from kamkunji.services.report_service import ReportService

reports_bp = Blueprint("reports", __name__)

_report_schema = ReportSchema()


@reports_bp.route("", methods=["POST"])
def create_report():
    """Flag a listing for review. Anonymous reports are accepted."""
    body = load_body(_report_schema)
    report = get_service(ReportService).create_report(
        body["product_id"], body["reason"], reporter_id=optional_user_id()
    )
    return success_response(report, message="Report submitted", status=201)
