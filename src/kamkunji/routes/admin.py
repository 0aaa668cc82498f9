"""
Admin console endpoints.

Every route starts with require_admin(): the X-User-Id caller must exist
and have role 'admin'.
"""

import logging

from flask import Blueprint, request

from kamkunji.core.dependencies import get_service
from kamkunji.routes.schemas import (
    AdminProductSchema,
    CategorySchema,
    CategoryUpdateSchema,
    FeaturedSchema,
    OrderStatusSchema,
    ProductStatusSchema,
    ProductUpdateSchema,
    ReportStatusSchema,
    UserUpdateSchema,
)
from kamkunji.routes.utils import (
    load_body,
    parse_bool,
    parse_int,
    parse_page,
    require_admin,
    success_response,
)
from kamkunji.services.category_service import CategoryService
from kamkunji.services.dashboard_service import DashboardService
from kamkunji.services.order_service import OrderService
from kamkunji.services.product_service import ProductService
from kamkunji.services.report_service import ReportService
from kamkunji.services.user_service import UserService

logger = logging.getLogger(__name__)

admin_bp = Blueprint("admin", __name__)

_admin_product_schema = AdminProductSchema()
_product_update_schema = ProductUpdateSchema()
_product_status_schema = ProductStatusSchema()
_featured_schema = FeaturedSchema()
_order_status_schema = OrderStatusSchema()
_report_status_schema = ReportStatusSchema()
_user_update_schema = UserUpdateSchema()
_category_schema = CategorySchema()
_category_update_schema = CategoryUpdateSchema()


def _page_payload(key, rows, limit, offset):
    return {key: rows, "pagination": {"limit": limit, "offset": offset, "count": len(rows)}}


# ---- dashboard ---- #

@admin_bp.route("/dashboard", methods=["GET"])
def dashboard():
    require_admin()
    recent = parse_int(request.args.get("recent"), default=5, min_val=1, max_val=50, field_name="recent")
    return success_response(get_service(DashboardService).dashboard_stats(recent))


# ---- products ---- #

@admin_bp.route("/products", methods=["GET"])
def list_products():
    require_admin()
    limit, offset = parse_page()
    featured_raw = request.args.get("featured")
    products = get_service(ProductService).admin_list_products(
        status=request.args.get("status") or None,
        featured=parse_bool(featured_raw) if featured_raw is not None else None,
        category_id=parse_int(request.args.get("category_id"), default=None, min_val=1, field_name="category_id"),
        search=request.args.get("q") or None,
        limit=limit,
        offset=offset,
    )
    return success_response(_page_payload("products", products, limit, offset))


@admin_bp.route("/products/<int:product_id>", methods=["GET"])
def get_product(product_id: int):
    require_admin()
    return success_response(get_service(ProductService).admin_get_product(product_id))


@admin_bp.route("/products", methods=["POST"])
def create_product():
    require_admin()
    body = load_body(_admin_product_schema)
    image_urls = body.pop("image_urls")
    product = get_service(ProductService).admin_create_product(body, image_urls)
    return success_response(product, message="Product created", status=201)


@admin_bp.route("/products/<int:product_id>", methods=["PATCH"])
def update_product(product_id: int):
    require_admin()
    body = load_body(_product_update_schema)
    image_urls = body.pop("image_urls", None)
    return success_response(get_service(ProductService).update_product(product_id, body, image_urls))


@admin_bp.route("/products/<int:product_id>/status", methods=["PATCH"])
def update_product_status(product_id: int):
    require_admin()
    body = load_body(_product_status_schema)
    product = get_service(ProductService).update_product_status(product_id, body["status"])
    return success_response(product, message=f"Product {body['status']}")


@admin_bp.route("/products/<int:product_id>/featured", methods=["PATCH"])
def set_featured(product_id: int):
    require_admin()
    body = load_body(_featured_schema)
    return success_response(get_service(ProductService).set_featured(product_id, body["featured"]))


@admin_bp.route("/products/<int:product_id>", methods=["DELETE"])
def delete_product(product_id: int):
    require_admin()
    get_service(ProductService).delete_product(product_id)
    return success_response(None, message="Product deleted")


# ---- orders ---- #

@admin_bp.route("/orders", methods=["GET"])
def list_orders():
    require_admin()
    limit, offset = parse_page()
    orders = get_service(OrderService).admin_list_orders(
        status=request.args.get("status") or None,
        search=request.args.get("q") or None,
        start_date=request.args.get("start_date") or None,
        end_date=request.args.get("end_date") or None,
        limit=limit,
        offset=offset,
    )
    return success_response(_page_payload("orders", orders, limit, offset))


@admin_bp.route("/orders/stats", methods=["GET"])
def order_stats():
    require_admin()
    return success_response(get_service(OrderService).order_stats())


@admin_bp.route("/orders/<int:order_id>", methods=["GET"])
def get_order(order_id: int):
    require_admin()
    return success_response(get_service(OrderService).get_order(order_id))


@admin_bp.route("/orders/<int:order_id>/status", methods=["PATCH"])
def update_order_status(order_id: int):
    require_admin()
    body = load_body(_order_status_schema)
    order = get_service(OrderService).update_status(order_id, body["status"])
    return success_response(order, message=f"Order marked {body['status']}")


# ---- users ---- #

@admin_bp.route("/users", methods=["GET"])
def list_users():
    require_admin()
    limit, offset = parse_page()
    users = get_service(UserService).list_users(
        role=request.args.get("role") or None,
        search=request.args.get("q") or None,
        limit=limit,
        offset=offset,
    )
    return success_response(_page_payload("users", users, limit, offset))


@admin_bp.route("/users/<int:user_id>", methods=["PATCH"])
def update_user(user_id: int):
    admin = require_admin()
    body = load_body(_user_update_schema)
    return success_response(get_service(UserService).update_user(user_id, body, acting_user_id=admin["id"]))


@admin_bp.route("/users/<int:user_id>", methods=["DELETE"])
def delete_user(user_id: int):
    admin = require_admin()
    get_service(UserService).delete_user(user_id, acting_user_id=admin["id"])
    return success_response(None, message="User deleted")


# ---- categories ---- #

@admin_bp.route("/categories", methods=["GET"])
def list_categories():
    require_admin()
    return success_response(get_service(CategoryService).categories_with_counts())


@admin_bp.route("/categories", methods=["POST"])
def create_category():
    require_admin()
    body = load_body(_category_schema)
    category = get_service(CategoryService).create_category(body["name"], body["icon"], body["description"])
    return success_response(category, status=201)


@admin_bp.route("/categories/<int:category_id>", methods=["PATCH"])
def update_category(category_id: int):
    require_admin()
    body = load_body(_category_update_schema)
    return success_response(get_service(CategoryService).update_category(category_id, body))


@admin_bp.route("/categories/<int:category_id>", methods=["DELETE"])
def delete_category(category_id: int):
    require_admin()
    get_service(CategoryService).delete_category(category_id)
    return success_response(None, message="Category deleted")


# ---- reports ---- #

@admin_bp.route("/reports", methods=["GET"])
def list_reports():
    require_admin()
    limit, offset = parse_page()
    reports = get_service(ReportService).list_reports(
        product_id=parse_int(request.args.get("product_id"), default=None, min_val=1, field_name="product_id"),
        status=request.args.get("status") or None,
        limit=limit,
        offset=offset,
    )
    return success_response(_page_payload("reports", reports, limit, offset))


@admin_bp.route("/reports/<int:report_id>/status", methods=["PATCH"])
def update_report_status(report_id: int):
    require_admin()
    body = load_body(_report_status_schema)
    return success_response(get_service(ReportService).update_report_status(report_id, body["status"]))
