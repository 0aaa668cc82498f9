from typing import Any, Dict, List, Optional
import logging

from sqlalchemy.engine import Connection

from kamkunji.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class EmailLogRepository(BaseRepository):

    @property
    def table_name(self) -> str:
        return "email_logs"

    def get_by_id(self, log_id: int, conn: Optional[Connection] = None) -> Optional[Dict[str, Any]]:
        row = self.execute_single_query(
            "SELECT id, to_email, subject, status, user_id, metadata, sent_at FROM email_logs WHERE id = :id",
            {"id": log_id},
            conn,
        )
        if row is not None:
            row["metadata"] = self.load_json(row["metadata"])
        return row

    def log(self, to_email: str, subject: str, status: str,
            user_id: Optional[int] = None, metadata: Optional[Dict[str, Any]] = None) -> int:
        return self.execute_insert_returning_id(
            """
            INSERT INTO email_logs (to_email, subject, status, user_id, metadata)
            VALUES (:to_email, :subject, :status, :user_id, :metadata)
            """,
            {
                "to_email": to_email,
                "subject": subject,
                "status": status,
                "user_id": user_id,
                "metadata": self.dump_json(metadata),
            },
        )

    def list_recent(self, limit: int = 50) -> List[Dict[str, Any]]:
        rows = self.execute_query(
            """
            SELECT id, to_email, subject, status, user_id, metadata, sent_at
            FROM email_logs
            ORDER BY sent_at DESC, id DESC
            LIMIT :limit
            """,
            {"limit": limit},
        )
        for row in rows:
            row["metadata"] = self.load_json(row["metadata"])
        return rows
