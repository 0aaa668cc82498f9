from typing import Any, Dict, List, Optional
import logging

from kamkunji.core.exceptions import NotFoundError, ValidationError
from kamkunji.models.report import REPORT_STATUSES
from kamkunji.repositories.product_repository import ProductRepository
from kamkunji.repositories.report_repository import ReportRepository
from kamkunji.utils.date_utils import DateUtils
from kamkunji.utils.validators import ValidationUtils

logger = logging.getLogger(__name__)


def serialize_report(row: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": int(row["id"]),
        "product_id": int(row["product_id"]),
        "product_name": row.get("product_name"),
        "reporter_id": row["reporter_id"],
        "reason": row["reason"],
        "status": row["status"],
        "created_at": DateUtils.to_iso_string(row["created_at"]),
        "updated_at": DateUtils.to_iso_string(row["updated_at"]),
    }


class ReportService:
    """Listing complaints raised by shoppers and triaged by admins"""

    def __init__(self, report_repository: ReportRepository, product_repository: ProductRepository):
        self.report_repo = report_repository
        self.product_repo = product_repository

    def create_report(self, product_id: int, reason: str,
                      reporter_id: Optional[int] = None) -> Dict[str, Any]:
        reason = ValidationUtils.sanitize_text(reason, ValidationUtils.MAX_TEXT_LENGTH)
        if not reason:
            raise ValidationError(
                "A reason is required",
                field_errors=[{"field": "reason", "message": "This field is required"}],
            )
        if not self.product_repo.exists(product_id):
            raise NotFoundError("Product", str(product_id))

        report_id = self.report_repo.create(product_id, reason, reporter_id)
        logger.info(f"Report {report_id} filed against product {product_id}")
        return serialize_report(self.report_repo.get_by_id(report_id))

    def list_reports(self, product_id: Optional[int] = None, status: Optional[str] = None,
                     limit: int = 20, offset: int = 0) -> List[Dict[str, Any]]:
        if status is not None and status not in REPORT_STATUSES:
            raise ValidationError(f"Status must be one of: {', '.join(REPORT_STATUSES)}")
        rows = self.report_repo.list_reports(limit, max(offset, 0), product_id, status)
        return [serialize_report(row) for row in rows]

    def update_report_status(self, report_id: int, status: str) -> Dict[str, Any]:
        if status not in ("resolved", "dismissed"):
            raise ValidationError(
                "Status must be one of: resolved, dismissed",
                field_errors=[{"field": "status", "message": "Invalid status"}],
            )
        if self.report_repo.update_status(report_id, status) == 0:
            raise NotFoundError("Report", str(report_id))
        logger.info(f"Report {report_id} marked {status}")
        return serialize_report(self.report_repo.get_by_id(report_id))

    def open_count(self) -> int:
        return self.report_repo.count_by_status("pending")
