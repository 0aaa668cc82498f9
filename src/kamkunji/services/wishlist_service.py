from typing import Any, Dict, List
import logging

from kamkunji.core.exceptions import NotFoundError
from kamkunji.repositories.product_repository import ProductRepository
from kamkunji.repositories.wishlist_repository import WishlistRepository
from kamkunji.utils.date_utils import DateUtils
from kamkunji.utils.formatting_utils import FormattingUtils

logger = logging.getLogger(__name__)


class WishlistService:

    def __init__(self, wishlist_repository: WishlistRepository, product_repository: ProductRepository):
        self.wishlist_repo = wishlist_repository
        self.product_repo = product_repository

    def get_wishlist(self, user_id: int) -> List[Dict[str, Any]]:
        return [
            {
                "id": int(row["id"]),
                "product_id": int(row["product_id"]),
                "name": row["product_name"],
                "price": FormattingUtils.money(row["price"]),
                "price_display": FormattingUtils.format_ksh(row["price"]),
                "available": row["product_status"] == "approved",
                "image_url": row["image_url"],
                "created_at": DateUtils.to_iso_string(row["created_at"]),
            }
            for row in self.wishlist_repo.list_for_user(user_id)
        ]

    def add(self, user_id: int, product_id: int) -> Dict[str, Any]:
        """Idempotent: adding a product twice returns the existing row"""
        existing = self.wishlist_repo.find(user_id, product_id)
        if existing is not None:
            return self._serialize(existing)

        product = self.product_repo.get_by_id(product_id)
        if product is None or product["status"] != "approved":
            raise NotFoundError("Product", str(product_id))

        item_id = self.wishlist_repo.insert(user_id, product_id)
        logger.info(f"User {user_id} wishlisted product {product_id}")
        return self._serialize(self.wishlist_repo.get_by_id(item_id))

    def remove(self, user_id: int, item_id: int) -> None:
        if self.wishlist_repo.delete(user_id, item_id) == 0:
            raise NotFoundError("Wishlist item", str(item_id))

    def contains(self, user_id: int, product_id: int) -> bool:
        return self.wishlist_repo.find(user_id, product_id) is not None

    @staticmethod
    def _serialize(row: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "id": int(row["id"]),
            "user_id": int(row["user_id"]),
            "product_id": int(row["product_id"]),
            "created_at": DateUtils.to_iso_string(row["created_at"]),
        }
