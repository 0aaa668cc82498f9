from typing import Any, Dict, List
from decimal import Decimal
import logging

from kamkunji.core.exceptions import BusinessLogicError, NotFoundError, ValidationError
from kamkunji.repositories.cart_repository import CartRepository
from kamkunji.repositories.product_repository import ProductRepository
from kamkunji.utils.formatting_utils import FormattingUtils

logger = logging.getLogger(__name__)


class CartService:
    """
    Shopping cart business logic service

    The server-side cart is the only cart: checkout reads from it and the
    storefront renders it.

    Responsibilities:
    - Only approved, in-stock products can be added
    - Quantities never exceed the product's stock
    - Totals are computed from current product prices
    """

    def __init__(self, cart_repository: CartRepository, product_repository: ProductRepository):
        self.cart_repo = cart_repository
        self.product_repo = product_repository
        self.max_quantity_per_item = 99  # Business rule

    def get_cart(self, user_id: int) -> Dict[str, Any]:
        """
        Business Rules:
        - Items whose product is no longer approved are left out of the
          items and totals; they are listed under unavailable_items so the
          shopper can still remove them
        """
        rows = self.cart_repo.get_items(user_id)
        items: List[Dict[str, Any]] = []
        unavailable: List[Dict[str, Any]] = []
        total = Decimal("0")
        units = 0

        for row in rows:
            if row["product_status"] != "approved":
                logger.info(f"Hiding cart item {row['cart_item_id']}: product {row['product_id']} is {row['product_status']}")
                unavailable.append({
                    "id": int(row["cart_item_id"]),
                    "product_id": int(row["product_id"]),
                    "name": row["product_name"],
                    "quantity": int(row["quantity"]),
                    "available": False,
                })
                continue
            price = FormattingUtils.to_decimal(row["price"])
            subtotal = price * int(row["quantity"])
            total += subtotal
            units += int(row["quantity"])
            items.append({
                "id": int(row["cart_item_id"]),
                "product_id": int(row["product_id"]),
                "name": row["product_name"],
                "price": FormattingUtils.money(price),
                "quantity": int(row["quantity"]),
                "subtotal": FormattingUtils.money(subtotal),
                "image_url": row["image_url"],
                "category_name": row["category_name"],
                "stock_quantity": int(row["stock_quantity"]),
            })

        return {
            "items": items,
            "item_count": units,
            "total": FormattingUtils.money(total),
            "total_display": FormattingUtils.format_ksh(total),
            "unavailable_items": unavailable,
        }

    def _purchasable_product(self, product_id: int) -> Dict[str, Any]:
        product = self.product_repo.get_by_id(product_id)
        if product is None or product["status"] != "approved":
            raise NotFoundError("Product", str(product_id))
        if int(product["stock_quantity"]) <= 0:
            raise BusinessLogicError(f"{product['name']} is out of stock", rule="out_of_stock")
        return product

    def add_item(self, user_id: int, product_id: int, quantity: int = 1) -> Dict[str, Any]:
        """
        Add a product or raise the quantity of one already in the cart

        Business Rules:
        - Product must be approved and in stock
        - Resulting quantity is capped at the available stock
        """
        if quantity < 1:
            raise ValidationError("Quantity must be positive")

        product = self._purchasable_product(product_id)
        cap = min(int(product["stock_quantity"]), self.max_quantity_per_item)

        item_id = self.cart_repo.insert_item_if_absent(user_id, product_id, min(quantity, cap))
        if item_id is None:
            self.cart_repo.increment_quantity(user_id, product_id, quantity, cap)
            logger.info(f"Raised quantity of product {product_id} in cart of user {user_id} by {quantity}")
        else:
            logger.info(f"Added product {product_id} to cart of user {user_id} as item {item_id}")

        return self.get_cart(user_id)

    def update_quantity(self, user_id: int, cart_item_id: int, quantity: int) -> Dict[str, Any]:
        """Quantity 0 removes the item"""
        if quantity < 0:
            raise ValidationError("Quantity cannot be negative")

        item = self.cart_repo.get_by_id(cart_item_id)
        if item is None or int(item["user_id"]) != user_id:
            raise NotFoundError("Cart item", str(cart_item_id))

        if quantity == 0:
            return self.remove_item(user_id, cart_item_id)

        product = self._purchasable_product(int(item["product_id"]))
        if quantity > int(product["stock_quantity"]):
            raise BusinessLogicError(
                f"Only {product['stock_quantity']} of {product['name']} available",
                rule="insufficient_stock",
            )
        if quantity > self.max_quantity_per_item:
            raise BusinessLogicError(
                f"Cannot add more than {self.max_quantity_per_item} of the same item",
                rule="max_item_quantity_exceeded",
            )

        self.cart_repo.set_quantity(cart_item_id, quantity)
        return self.get_cart(user_id)

    def remove_item(self, user_id: int, cart_item_id: int) -> Dict[str, Any]:
        if self.cart_repo.remove_item(user_id, cart_item_id) == 0:
            raise NotFoundError("Cart item", str(cart_item_id))
        logger.info(f"Removed cart item {cart_item_id} for user {user_id}")
        return self.get_cart(user_id)

    def clear(self, user_id: int) -> None:
        removed = self.cart_repo.clear(user_id)
        logger.info(f"Cleared {removed} items from cart of user {user_id}")

    def count(self, user_id: int) -> int:
        return self.cart_repo.count_units(user_id)

    def contains(self, user_id: int, product_id: int) -> bool:
        return self.cart_repo.contains(user_id, product_id)
