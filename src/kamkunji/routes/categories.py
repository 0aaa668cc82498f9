from flask import Blueprint

from kamkunji.core.dependencies import get_service
from kamkunji.routes.utils import parse_page, success_response
from kamkunji.services.category_service import CategoryService

categories_bp = Blueprint("categories", __name__)


@categories_bp.route("", methods=["GET"])
def list_categories():
    return success_response(get_service(CategoryService).list_categories())


@categories_bp.route("/<int:category_id>", methods=["GET"])
def get_category(category_id: int):
    return success_response(get_service(CategoryService).get_category(category_id))


@categories_bp.route("/<int:category_id>/products", methods=["GET"])
def category_products(category_id: int):
    limit, offset = parse_page()
    products = get_service(CategoryService).list_category_products(category_id, limit, offset)
    return success_response({
        "products": products,
        "pagination": {"limit": limit, "offset": offset, "count": len(products)},
    })
