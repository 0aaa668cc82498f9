from typing import Any, Dict, Iterable, List, Optional
import logging

from sqlalchemy.engine import Connection

from kamkunji.repositories.base import BaseRepository

logger = logging.getLogger(__name__)

_PRODUCT_COLUMNS = """
    p.id,
    p.name,
    p.description,
    p.price,
    p.category_id,
    c.name AS category_name,
    p.seller_id,
    p.stock_quantity,
    p.is_featured,
    p.condition,
    p.location,
    p.phone,
    p.status,
    p.created_at,
    p.updated_at
"""


class ProductRepository(BaseRepository):
    """Products and their product_images rows"""

    @property
    def table_name(self) -> str:
        return "products"

    def get_by_id(self, product_id: int, conn: Optional[Connection] = None) -> Optional[Dict[str, Any]]:
        query = f"""
        SELECT {_PRODUCT_COLUMNS}
        FROM products p
        LEFT JOIN categories c ON c.id = p.category_id
        WHERE p.id = :product_id
        """
        return self.execute_single_query(query, {"product_id": product_id}, conn)

    def list_products(
        self,
        limit: int,
        offset: int = 0,
        status: Optional[str] = None,
        category_id: Optional[int] = None,
        featured: Optional[bool] = None,
        search: Optional[str] = None,
        exclude_id: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """
        Newest first. status=None means every status (admin views).
        """
        query = f"""
        SELECT {_PRODUCT_COLUMNS}
        FROM products p
        LEFT JOIN categories c ON c.id = p.category_id
        WHERE 1=1
        """
        params: Dict[str, Any] = {"limit": limit, "offset": offset}

        if status is not None:
            query += " AND p.status = :status"
            params["status"] = status

        if category_id is not None:
            query += " AND p.category_id = :category_id"
            params["category_id"] = category_id

        if featured is not None:
            query += " AND p.is_featured = :featured"
            params["featured"] = featured

        if search:
            # LOWER() LIKE rather than ILIKE so the same SQL runs on SQLite
            query += (
                " AND (LOWER(p.name) LIKE :search"
                " OR LOWER(COALESCE(p.description, '')) LIKE :search)"
            )
            params["search"] = f"%{search.lower()}%"

        if exclude_id is not None:
            query += " AND p.id <> :exclude_id"
            params["exclude_id"] = exclude_id

        query += " ORDER BY p.created_at DESC, p.id DESC LIMIT :limit OFFSET :offset"

        return self.execute_query(query, params)

    def get_images(self, product_ids: Iterable[int], conn: Optional[Connection] = None) -> Dict[int, List[Dict[str, Any]]]:
        """Image rows grouped by product id, primary image first"""
        ids = list(product_ids)
        images: Dict[int, List[Dict[str, Any]]] = {pid: [] for pid in ids}
        if not ids:
            return images

        placeholders = ", ".join(f":pid{i}" for i in range(len(ids)))
        params = {f"pid{i}": pid for i, pid in enumerate(ids)}
        rows = self.execute_query(
            f"""
            SELECT id, product_id, url, is_primary
            FROM product_images
            WHERE product_id IN ({placeholders})
            ORDER BY product_id, is_primary DESC, id
            """,
            params,
            conn,
        )
        for row in rows:
            images[int(row["product_id"])].append(row)
        return images

    def count_images(self, product_id: int) -> int:
        return int(self.execute_scalar(
            "SELECT COUNT(*) FROM product_images WHERE product_id = :pid", {"pid": product_id}
        ))

    def count_by_status(self) -> Dict[str, int]:
        rows = self.execute_query("SELECT status, COUNT(*) AS n FROM products GROUP BY status")
        return {row["status"]: int(row["n"]) for row in rows}

    def count_by_category(self, category_id: int, conn: Optional[Connection] = None) -> int:
        return int(self.execute_scalar(
            "SELECT COUNT(*) FROM products WHERE category_id = :cid", {"cid": category_id}, conn
        ))

    def create(self, data: Dict[str, Any], conn: Connection) -> int:
        return self.execute_insert_returning_id(
            """
            INSERT INTO products (
                name, description, price, category_id, seller_id, stock_quantity,
                is_featured, condition, location, phone, status
            )
            VALUES (
                :name, :description, :price, :category_id, :seller_id, :stock_quantity,
                :is_featured, :condition, :location, :phone, :status
            )
            """,
            data,
            conn,
        )

    def add_images(self, product_id: int, urls: List[str], conn: Connection) -> int:
        return self.execute_batch_command(
            """
            INSERT INTO product_images (product_id, url, is_primary)
            VALUES (:product_id, :url, :is_primary)
            """,
            [
                {"product_id": product_id, "url": url, "is_primary": index == 0}
                for index, url in enumerate(urls)
            ],
            conn,
        )

    def update_fields(self, product_id: int, fields: Dict[str, Any], conn: Connection) -> int:
        """Column names come from the service's whitelist, never from the request"""
        if not fields:
            return 0
        assignments = ", ".join(f"{column} = :{column}" for column in fields)
        return self.execute_command(
            f"UPDATE products SET {assignments}, updated_at = CURRENT_TIMESTAMP WHERE id = :id",
            dict(fields, id=product_id),
            conn,
        )

    def update_status(self, product_id: int, status: str) -> int:
        return self.execute_command(
            """
            UPDATE products
            SET status = :status, updated_at = CURRENT_TIMESTAMP
            WHERE id = :product_id
            """,
            {"status": status, "product_id": product_id},
        )

    def set_featured(self, product_id: int, featured: bool) -> int:
        return self.execute_command(
            """
            UPDATE products
            SET is_featured = :featured, updated_at = CURRENT_TIMESTAMP
            WHERE id = :product_id
            """,
            {"featured": featured, "product_id": product_id},
        )

    def delete_images(self, product_id: int, conn: Connection) -> int:
        return self.execute_command(
            "DELETE FROM product_images WHERE product_id = :pid", {"pid": product_id}, conn
        )

    def delete(self, product_id: int, conn: Connection) -> int:
        return self.execute_command(
            "DELETE FROM products WHERE id = :pid", {"pid": product_id}, conn
        )

