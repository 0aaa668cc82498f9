from typing import Any, Dict, List, Optional
import logging

from sqlalchemy.engine import Connection

from kamkunji.repositories.base import BaseRepository

logger = logging.getLogger(__name__)

_ORDER_COLUMNS = """
    o.id,
    o.user_id,
    o.full_name,
    o.email,
    o.phone,
    o.shipping_address,
    o.total_amount,
    o.status,
    o.payment_status,
    o.payment_method,
    o.checkout_request_id,
    o.payment_reference,
    o.created_at,
    o.updated_at
"""


class OrderRepository(BaseRepository):
    """Orders and their line items"""

    @property
    def table_name(self) -> str:
        return "orders"

    def _hydrate(self, row: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        if row is not None:
            row["shipping_address"] = self.load_json(row.get("shipping_address")) or {}
        return row

    def get_by_id(self, order_id: int, conn: Optional[Connection] = None) -> Optional[Dict[str, Any]]:
        return self._hydrate(self.execute_single_query(
            f"SELECT {_ORDER_COLUMNS} FROM orders o WHERE o.id = :id", {"id": order_id}, conn
        ))

    def get_by_checkout_request_id(self, checkout_request_id: str) -> Optional[Dict[str, Any]]:
        return self._hydrate(self.execute_single_query(
            f"SELECT {_ORDER_COLUMNS} FROM orders o WHERE o.checkout_request_id = :crid",
            {"crid": checkout_request_id},
        ))

    def get_items(self, order_ids: List[int], conn: Optional[Connection] = None) -> Dict[int, List[Dict[str, Any]]]:
        items: Dict[int, List[Dict[str, Any]]] = {oid: [] for oid in order_ids}
        if not order_ids:
            return items

        placeholders = ", ".join(f":oid{i}" for i in range(len(order_ids)))
        params = {f"oid{i}": oid for i, oid in enumerate(order_ids)}
        rows = self.execute_query(
            f"""
            SELECT id, order_id, product_id, product_name, quantity, price
            FROM order_items
            WHERE order_id IN ({placeholders})
            ORDER BY order_id, id
            """,
            params,
            conn,
        )
        for row in rows:
            items[int(row["order_id"])].append(row)
        return items

    def create(self, order: Dict[str, Any], conn: Connection) -> int:
        params = dict(order, shipping_address=self.dump_json(order.get("shipping_address") or {}))
        return self.execute_insert_returning_id(
            """
            INSERT INTO orders (
                user_id, full_name, email, phone, shipping_address,
                total_amount, status, payment_status, payment_method
            )
            VALUES (
                :user_id, :full_name, :email, :phone, :shipping_address,
                :total_amount, :status, :payment_status, :payment_method
            )
            """,
            params,
            conn,
        )

    def add_items(self, order_id: int, items: List[Dict[str, Any]], conn: Connection) -> int:
        return self.execute_batch_command(
            """
            INSERT INTO order_items (order_id, product_id, product_name, quantity, price)
            VALUES (:order_id, :product_id, :product_name, :quantity, :price)
            """,
            [dict(item, order_id=order_id) for item in items],
            conn,
        )

    def update_fields(self, order_id: int, fields: Dict[str, Any],
                      conn: Optional[Connection] = None) -> int:
        """Partial update of status/payment columns; updated_at always bumped"""
        if not fields:
            return 0
        assignments = ", ".join(f"{column} = :{column}" for column in fields)
        params = dict(fields, id=order_id)
        return self.execute_command(
            f"UPDATE orders SET {assignments}, updated_at = CURRENT_TIMESTAMP WHERE id = :id",
            params,
            conn,
        )

    def update_status_if(self, order_id: int, expected_status: str, fields: Dict[str, Any]) -> int:
        """
        Compare-and-set on status. The callback and the poller can both
        report the same payment; only the first write wins.
        """
        assignments = ", ".join(f"{column} = :{column}" for column in fields)
        params = dict(fields, id=order_id, expected_status=expected_status)
        return self.execute_command(
            f"""
            UPDATE orders SET {assignments}, updated_at = CURRENT_TIMESTAMP
            WHERE id = :id AND status = :expected_status
            """,
            params,
        )

    def list_orders(
        self,
        limit: int,
        offset: int = 0,
        user_id: Optional[int] = None,
        status: Optional[str] = None,
        search: Optional[str] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """
        Newest first. start_date/end_date are 'YYYY-MM-DD HH:MM:SS' UTC
        strings (see DateUtils.to_db_string).
        """
        query = f"SELECT {_ORDER_COLUMNS} FROM orders o WHERE 1=1"
        params: Dict[str, Any] = {"limit": limit, "offset": offset}

        if user_id is not None:
            query += " AND o.user_id = :user_id"
            params["user_id"] = user_id

        if status:
            query += " AND o.status = :status"
            params["status"] = status

        if search:
            query += """
            AND (
                CAST(o.id AS TEXT) = :search_exact
                OR LOWER(o.email) LIKE :search
                OR LOWER(o.full_name) LIKE :search
                OR o.phone LIKE :search
            )
            """
            params["search_exact"] = search.strip().lstrip("#")
            params["search"] = f"%{search.strip().lower()}%"

        if start_date:
            query += " AND o.created_at >= :start_date"
            params["start_date"] = start_date

        if end_date:
            query += " AND o.created_at <= :end_date"
            params["end_date"] = end_date

        query += " ORDER BY o.created_at DESC, o.id DESC LIMIT :limit OFFSET :offset"

        return [self._hydrate(row) for row in self.execute_query(query, params)]

    def count_by_status(self) -> Dict[str, int]:
        rows = self.execute_query("SELECT status, COUNT(*) AS n FROM orders GROUP BY status")
        return {row["status"]: int(row["n"]) for row in rows}

    def count_by_payment_status(self) -> Dict[str, int]:
        rows = self.execute_query(
            "SELECT payment_status, COUNT(*) AS n FROM orders GROUP BY payment_status"
        )
        return {row["payment_status"]: int(row["n"]) for row in rows}

    def paid_revenue(self) -> Any:
        return self.execute_scalar(
            "SELECT COALESCE(SUM(total_amount), 0) FROM orders WHERE payment_status = 'paid'"
        )
