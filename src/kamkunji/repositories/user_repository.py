from typing import Any, Dict, List, Optional
import logging

from sqlalchemy.engine import Connection

from kamkunji.repositories.base import BaseRepository

logger = logging.getLogger(__name__)

_USER_COLUMNS = "id, email, full_name, phone, role, created_at, updated_at"


class UserRepository(BaseRepository):
    """
    Users and admins share one table. password_hash is only selected by
    get_credentials so it never leaks into API payloads.
    """

    @property
    def table_name(self) -> str:
        return "users"

    def get_by_id(self, user_id: int, conn: Optional[Connection] = None) -> Optional[Dict[str, Any]]:
        return self.execute_single_query(
            f"SELECT {_USER_COLUMNS} FROM users WHERE id = :id", {"id": user_id}, conn
        )

    def get_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        return self.execute_single_query(
            f"SELECT {_USER_COLUMNS} FROM users WHERE email = :email", {"email": email}
        )

    def get_credentials(self, email: str) -> Optional[Dict[str, Any]]:
        return self.execute_single_query(
            f"SELECT {_USER_COLUMNS}, password_hash FROM users WHERE email = :email",
            {"email": email},
        )

    def create(self, email: str, full_name: str, password_hash: Optional[str],
               phone: Optional[str] = None, role: str = "user",
               conn: Optional[Connection] = None) -> int:
        return self.execute_insert_returning_id(
            """
            INSERT INTO users (email, full_name, phone, password_hash, role)
            VALUES (:email, :full_name, :phone, :password_hash, :role)
            """,
            {
                "email": email,
                "full_name": full_name,
                "phone": phone,
                "password_hash": password_hash,
                "role": role,
            },
            conn,
        )

    def list_users(self, limit: int, offset: int = 0, role: Optional[str] = None,
                   search: Optional[str] = None) -> List[Dict[str, Any]]:
        query = f"SELECT {_USER_COLUMNS} FROM users WHERE 1=1"
        params: Dict[str, Any] = {"limit": limit, "offset": offset}
        if role:
            query += " AND role = :role"
            params["role"] = role
        if search:
            query += " AND (LOWER(email) LIKE :search OR LOWER(full_name) LIKE :search)"
            params["search"] = f"%{search.lower()}%"
        query += " ORDER BY created_at DESC, id DESC LIMIT :limit OFFSET :offset"
        return self.execute_query(query, params)

    def count_users(self, role: Optional[str] = None) -> int:
        if role:
            return int(self.execute_scalar(
                "SELECT COUNT(*) FROM users WHERE role = :role", {"role": role}
            ))
        return int(self.execute_scalar("SELECT COUNT(*) FROM users"))

    def update(self, user_id: int, fields: Dict[str, Any]) -> int:
        if not fields:
            return 0
        assignments = ", ".join(f"{column} = :{column}" for column in fields)
        params = dict(fields, id=user_id)
        return self.execute_command(
            f"UPDATE users SET {assignments}, updated_at = CURRENT_TIMESTAMP WHERE id = :id",
            params,
        )

    def delete(self, user_id: int) -> int:
        return self.execute_command("DELETE FROM users WHERE id = :id", {"id": user_id})
