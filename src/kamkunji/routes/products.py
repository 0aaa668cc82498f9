import logging

from flask import Blueprint, abort, request

from kamkunji.core.dependencies import get_service
from kamkunji.routes.schemas import ProductSubmissionSchema
from kamkunji.routes.utils import (
    load_body,
    optional_user_id,
    parse_bool,
    parse_int,
    parse_page,
    success_response,
)
from kamkunji.services.product_service import ProductService

logger = logging.getLogger(__name__)

products_bp = Blueprint("products", __name__)

_submission_schema = ProductSubmissionSchema()


@products_bp.route("", methods=["GET"])
def list_products():
    """Approved products, newest first. Filters: category_id, featured, q."""
    limit, offset = parse_page()
    category_id = parse_int(request.args.get("category_id"), default=None, min_val=1, field_name="category_id")

    search_query = request.args.get("q", "").strip()
    if len(search_query) > 100:
        abort(400, "Search query cannot exceed 100 characters.")

    products = get_service(ProductService).list_products(
        category_id=category_id,
        featured=parse_bool(request.args.get("featured")),
        search=search_query or None,
        limit=limit,
        offset=offset,
    )
    return success_response({
        "products": products,
        "pagination": {"limit": limit, "offset": offset, "count": len(products)},
    })


@products_bp.route("/<int:product_id>", methods=["GET"])
def get_product(product_id: int):
    return success_response(get_service(ProductService).get_product(product_id))


@products_bp.route("/<int:product_id>/related", methods=["GET"])
def related_products(product_id: int):
    limit = parse_int(request.args.get("limit"), default=4, min_val=1, max_val=20, field_name="limit")
    return success_response(get_service(ProductService).get_related_products(product_id, limit))


@products_bp.route("", methods=["POST"])
def submit_product():
    """Seller submission; always lands in the moderation queue as pending."""
    body = load_body(_submission_schema)
    image_urls = body.pop("image_urls")
    product = get_service(ProductService).submit_product(body, image_urls, seller_id=optional_user_id())
    return success_response(
        product, message="Product submitted and awaiting approval", status=201
    )

