from flask import Blueprint

from kamkunji.core.dependencies import get_service
from kamkunji.routes.schemas import WishlistItemSchema
from kamkunji.routes.utils import get_current_user_id, load_body, success_response
from kamkunji.services.wishlist_service import WishlistService

wishlist_bp = Blueprint("wishlist", __name__)

_item_schema = WishlistItemSchema()


@wishlist_bp.route("/me", methods=["GET"])
def get_my_wishlist():
    return success_response(get_service(WishlistService).get_wishlist(get_current_user_id()))


@wishlist_bp.route("/me/items", methods=["POST"])
def add_wishlist_item():
    """Idempotent: adding a product twice returns the existing entry."""
    user_id = get_current_user_id()
    body = load_body(_item_schema)
    item = get_service(WishlistService).add(user_id, body["product_id"])
    return success_response(item, status=201)


@wishlist_bp.route("/me/items/<int:item_id>", methods=["DELETE"])
def remove_wishlist_item(item_id: int):
    get_service(WishlistService).remove(get_current_user_id(), item_id)
    return success_response(None, message="Removed from wishlist")


@wishlist_bp.route("/me/contains/<int:product_id>", methods=["GET"])
def wishlist_contains(product_id: int):
    contained = get_service(WishlistService).contains(get_current_user_id(), product_id)
    return success_response({"product_id": product_id, "in_wishlist": contained})
