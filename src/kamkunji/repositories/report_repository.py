from typing import Any, Dict, List, Optional
import logging

from sqlalchemy.engine import Connection

from kamkunji.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class ReportRepository(BaseRepository):

    @property
    def table_name(self) -> str:
        return "reports"

    def get_by_id(self, report_id: int, conn: Optional[Connection] = None) -> Optional[Dict[str, Any]]:
        return self.execute_single_query(
            """
            SELECT r.id, r.product_id, p.name AS product_name, r.reporter_id,
                   r.reason, r.status, r.created_at, r.updated_at
            FROM reports r
            LEFT JOIN products p ON p.id = r.product_id
            WHERE r.id = :id
            """,
            {"id": report_id},
            conn,
        )

    def create(self, product_id: int, reason: str, reporter_id: Optional[int]) -> int:
        return self.execute_insert_returning_id(
            """
            INSERT INTO reports (product_id, reporter_id, reason, status)
            VALUES (:product_id, :reporter_id, :reason, 'pending')
            """,
            {"product_id": product_id, "reporter_id": reporter_id, "reason": reason},
        )

    def list_reports(self, limit: int, offset: int = 0, product_id: Optional[int] = None,
                     status: Optional[str] = None) -> List[Dict[str, Any]]:
        query = """
        SELECT r.id, r.product_id, p.name AS product_name, r.reporter_id,
               r.reason, r.status, r.created_at, r.updated_at
        FROM reports r
        LEFT JOIN products p ON p.id = r.product_id
        WHERE 1=1
        """
        params: Dict[str, Any] = {"limit": limit, "offset": offset}
        if product_id is not None:
            query += " AND r.product_id = :product_id"
            params["product_id"] = product_id
        if status:
            query += " AND r.status = :status"
            params["status"] = status
        query += " ORDER BY r.created_at DESC, r.id DESC LIMIT :limit OFFSET :offset"
        return self.execute_query(query, params)

    def update_status(self, report_id: int, status: str) -> int:
        return self.execute_command(
            """
            UPDATE reports SET status = :status, updated_at = CURRENT_TIMESTAMP
            WHERE id = :id
            """,
            {"status": status, "id": report_id},
        )

    def count_by_status(self, status: str) -> int:
        return int(self.execute_scalar(
            "SELECT COUNT(*) FROM reports WHERE status = :status", {"status": status}
        ))
