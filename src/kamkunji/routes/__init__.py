from kamkunji.routes.admin import admin_bp
from kamkunji.routes.auth import auth_bp
from kamkunji.routes.cart import cart_bp
from kamkunji.routes.categories import categories_bp
from kamkunji.routes.emails import emails_bp
from kamkunji.routes.orders import orders_bp
from kamkunji.routes.payments import payments_bp
from kamkunji.routes.products import products_bp
from kamkunji.routes.reports import reports_bp
from kamkunji.routes.setup import setup_bp
from kamkunji.routes.wishlist import wishlist_bp

__all__ = [
    "products_bp", "categories_bp", "cart_bp", "wishlist_bp", "orders_bp",
    "payments_bp", "reports_bp", "auth_bp", "emails_bp", "admin_bp", "setup_bp",
]
