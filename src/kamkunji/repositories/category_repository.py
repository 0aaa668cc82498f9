from typing import Any, Dict, List, Optional
import logging

from sqlalchemy.engine import Connection

from kamkunji.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class CategoryRepository(BaseRepository):

    @property
    def table_name(self) -> str:
        return "categories"

    def get_by_id(self, category_id: int, conn: Optional[Connection] = None) -> Optional[Dict[str, Any]]:
        return self.execute_single_query(
            "SELECT id, name, icon, description, created_at FROM categories WHERE id = :id",
            {"id": category_id},
            conn,
        )

    def get_by_name(self, name: str) -> Optional[Dict[str, Any]]:
        return self.execute_single_query(
            "SELECT id, name, icon, description, created_at FROM categories WHERE LOWER(name) = LOWER(:name)",
            {"name": name},
        )

    def list_all(self) -> List[Dict[str, Any]]:
        return self.execute_query(
            "SELECT id, name, icon, description, created_at FROM categories ORDER BY name"
        )

    def count(self, conn: Optional[Connection] = None) -> int:
        return int(self.execute_scalar("SELECT COUNT(*) FROM categories", conn=conn))

    def list_with_counts(self) -> List[Dict[str, Any]]:
        """Approved product count per category, busiest first"""
        return self.execute_query(
            """
            SELECT c.id, c.name, c.icon, c.description, COUNT(p.id) AS product_count
            FROM categories c
            LEFT JOIN products p ON p.category_id = c.id AND p.status = 'approved'
            GROUP BY c.id, c.name, c.icon, c.description
            ORDER BY product_count DESC, c.name
            """
        )

    def create(self, name: str, icon: Optional[str], description: Optional[str],
               conn: Optional[Connection] = None) -> int:
        return self.execute_insert_returning_id(
            """
            INSERT INTO categories (name, icon, description)
            VALUES (:name, :icon, :description)
            """,
            {"name": name, "icon": icon, "description": description},
            conn,
        )

    def update(self, category_id: int, fields: Dict[str, Any]) -> int:
        if not fields:
            return 0
        assignments = ", ".join(f"{column} = :{column}" for column in fields)
        params = dict(fields, id=category_id)
        return self.execute_command(
            f"UPDATE categories SET {assignments} WHERE id = :id", params
        )

    def delete(self, category_id: int) -> int:
        return self.execute_command("DELETE FROM categories WHERE id = :id", {"id": category_id})
