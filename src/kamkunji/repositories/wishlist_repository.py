from typing import Any, Dict, List, Optional
import logging

from sqlalchemy.engine import Connection

from kamkunji.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class WishlistRepository(BaseRepository):

    @property
    def table_name(self) -> str:
        return "wishlist"

    def get_by_id(self, item_id: int, conn: Optional[Connection] = None) -> Optional[Dict[str, Any]]:
        return self.execute_single_query(
            "SELECT id, user_id, product_id, created_at FROM wishlist WHERE id = :id",
            {"id": item_id},
            conn,
        )

    def list_for_user(self, user_id: int) -> List[Dict[str, Any]]:
        return self.execute_query(
            """
            SELECT
                w.id,
                w.product_id,
                w.created_at,
                p.name AS product_name,
                p.price,
                p.status AS product_status,
                (SELECT pi.url FROM product_images pi
                 WHERE pi.product_id = p.id
                 ORDER BY pi.is_primary DESC, pi.id
                 LIMIT 1) AS image_url
            FROM wishlist w
            JOIN products p ON p.id = w.product_id
            WHERE w.user_id = :user_id
            ORDER BY w.created_at DESC, w.id DESC
            """,
            {"user_id": user_id},
        )

    def find(self, user_id: int, product_id: int) -> Optional[Dict[str, Any]]:
        return self.execute_single_query(
            """
            SELECT id, user_id, product_id, created_at
            FROM wishlist
            WHERE user_id = :user_id AND product_id = :product_id
            """,
            {"user_id": user_id, "product_id": product_id},
        )

    def insert(self, user_id: int, product_id: int) -> int:
        return self.execute_insert_returning_id(
            "INSERT INTO wishlist (user_id, product_id) VALUES (:user_id, :product_id)",
            {"user_id": user_id, "product_id": product_id},
        )

    def delete(self, user_id: int, item_id: int) -> int:
        return self.execute_command(
            "DELETE FROM wishlist WHERE id = :id AND user_id = :user_id",
            {"id": item_id, "user_id": user_id},
        )
