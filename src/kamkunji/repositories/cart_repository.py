from typing import Any, Dict, List, Optional
import logging

from sqlalchemy import text
from sqlalchemy.engine import Connection

from kamkunji.repositories.base import BaseRepository

logger = logging.getLogger(__name__)

# First image by is_primary then id; correlated so it works without window functions
_PRIMARY_IMAGE = """
    (SELECT pi.url FROM product_images pi
     WHERE pi.product_id = p.id
     ORDER BY pi.is_primary DESC, pi.id
     LIMIT 1)
"""


class CartRepository(BaseRepository):
    """Repository for the server-side shopping cart (cart_items)"""

    @property
    def table_name(self) -> str:
        return "cart_items"

    def get_by_id(self, cart_item_id: int, conn: Optional[Connection] = None) -> Optional[Dict[str, Any]]:
        return self.execute_single_query(
            "SELECT id, user_id, product_id, quantity, created_at FROM cart_items WHERE id = :id",
            {"id": cart_item_id},
            conn,
        )

    def get_items(self, user_id: int, conn: Optional[Connection] = None) -> List[Dict[str, Any]]:
        """
        Cart rows joined with their products

        Rows are returned whatever the product status; the service decides
        what a shopper may still buy.
        """
        query = f"""
        SELECT
            ci.id AS cart_item_id,
            ci.product_id,
            ci.quantity,
            ci.created_at,
            p.name AS product_name,
            p.price,
            p.status AS product_status,
            p.stock_quantity,
            c.name AS category_name,
            {_PRIMARY_IMAGE} AS image_url
        FROM cart_items ci
        JOIN products p ON p.id = ci.product_id
        LEFT JOIN categories c ON c.id = p.category_id
        WHERE ci.user_id = :user_id
        ORDER BY ci.created_at DESC, ci.id DESC
        """
        return self.execute_query(query, {"user_id": user_id}, conn)

    def find_item(self, user_id: int, product_id: int) -> Optional[Dict[str, Any]]:
        return self.execute_single_query(
            """
            SELECT id, user_id, product_id, quantity, created_at
            FROM cart_items
            WHERE user_id = :user_id AND product_id = :product_id
            """,
            {"user_id": user_id, "product_id": product_id},
        )

    def insert_item(self, user_id: int, product_id: int, quantity: int) -> int:
        return self.execute_insert_returning_id(
            """
            INSERT INTO cart_items (user_id, product_id, quantity)
            VALUES (:user_id, :product_id, :quantity)
            """,
            {"user_id": user_id, "product_id": product_id, "quantity": quantity},
        )

    def insert_item_if_absent(self, user_id: int, product_id: int, quantity: int) -> Optional[int]:
        """New row id, or None when the (user, product) row already exists"""
        statement = """
            INSERT INTO cart_items (user_id, product_id, quantity)
            VALUES (:user_id, :product_id, :quantity)
            ON CONFLICT (user_id, product_id) DO NOTHING
            RETURNING id
        """
        params = {"user_id": user_id, "product_id": product_id, "quantity": quantity}
        return self._run(
            "INSERT", statement, None,
            lambda c: c.execute(text(statement), params).scalar(),
            commit=True,
        )

    def increment_quantity(self, user_id: int, product_id: int, quantity: int, cap: int) -> int:
        """Single UPDATE, so concurrent adds both land; never above cap"""
        return self.execute_command(
            """
            UPDATE cart_items
            SET quantity = CASE
                WHEN quantity + :quantity > :cap THEN :cap
                ELSE quantity + :quantity
            END
            WHERE user_id = :user_id AND product_id = :product_id
            """,
            {"user_id": user_id, "product_id": product_id, "quantity": quantity, "cap": cap},
        )

    def set_quantity(self, cart_item_id: int, quantity: int) -> int:
        return self.execute_command(
            "UPDATE cart_items SET quantity = :quantity WHERE id = :id",
            {"quantity": quantity, "id": cart_item_id},
        )

    def remove_item(self, user_id: int, cart_item_id: int) -> int:
        """Ownership enforced in the WHERE clause"""
        return self.execute_command(
            "DELETE FROM cart_items WHERE id = :id AND user_id = :user_id",
            {"id": cart_item_id, "user_id": user_id},
        )

    def clear(self, user_id: int, conn: Optional[Connection] = None) -> int:
        return self.execute_command(
            "DELETE FROM cart_items WHERE user_id = :user_id", {"user_id": user_id}, conn
        )

    def count_units(self, user_id: int) -> int:
        total = self.execute_scalar(
            "SELECT COALESCE(SUM(quantity), 0) FROM cart_items WHERE user_id = :user_id",
            {"user_id": user_id},
        )
        return int(total or 0)

    def contains(self, user_id: int, product_id: int) -> bool:
        return self.find_item(user_id, product_id) is not None
