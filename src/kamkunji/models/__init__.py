# Re-export all models from a single entry point so the rest of the app
# can import cleanly:
#   from kamkunji.models import Product, Order
#
# Importing all models here also ensures they are registered with Base.metadata
# before any call to Base.metadata.create_all().

from kamkunji.models.user import User
from kamkunji.models.product import PRODUCT_STATUSES, Category, Product, ProductImage
from kamkunji.models.order import (
    ORDER_TRANSITIONS, Order, OrderItem, OrderStatus, PaymentStatus, can_transition,
)
from kamkunji.models.cart import CartItem, WishlistItem
from kamkunji.models.report import REPORT_STATUSES, EmailLog, Report

__all__ = [
    "User",
    "Category",
    "Product",
    "ProductImage",
    "PRODUCT_STATUSES",
    "Order",
    "OrderItem",
    "OrderStatus",
    "PaymentStatus",
    "ORDER_TRANSITIONS",
    "can_transition",
    "CartItem",
    "WishlistItem",
    "Report",
    "REPORT_STATUSES",
    "EmailLog",
]
