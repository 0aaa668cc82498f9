import logging

from flask import Blueprint

from kamkunji.core.dependencies import get_service
from kamkunji.routes.schemas import AddCartItemSchema, UpdateCartItemSchema
from kamkunji.routes.utils import get_current_user_id, load_body, success_response
from kamkunji.services.cart_service import CartService

logger = logging.getLogger(__name__)

cart_bp = Blueprint("cart", __name__)

_add_schema = AddCartItemSchema()
_update_schema = UpdateCartItemSchema()


@cart_bp.route("/me", methods=["GET"])
def get_my_cart():
    """Return the current user's cart with totals."""
    return success_response(get_service(CartService).get_cart(get_current_user_id()))


@cart_bp.route("/me/count", methods=["GET"])
def cart_count():
    return success_response({"count": get_service(CartService).count(get_current_user_id())})


@cart_bp.route("/me/items", methods=["POST"])
def add_cart_item():
    """Add a product; an existing line has its quantity increased."""
    user_id = get_current_user_id()
    body = load_body(_add_schema)
    cart = get_service(CartService).add_item(user_id, body["product_id"], body["quantity"])
    return success_response(cart, message="Item added to cart", status=201)


@cart_bp.route("/me/items/<int:item_id>", methods=["PATCH"])
def update_cart_item(item_id: int):
    """Set the quantity of a line; 0 removes it."""
    user_id = get_current_user_id()
    body = load_body(_update_schema)
    cart = get_service(CartService).update_quantity(user_id, item_id, body["quantity"])
    return success_response(cart)


@cart_bp.route("/me/items/<int:item_id>", methods=["DELETE"])
def remove_cart_item(item_id: int):
    cart = get_service(CartService).remove_item(get_current_user_id(), item_id)
    return success_response(cart, message="Item removed from cart")


@cart_bp.route("/me", methods=["DELETE"])
def clear_cart():
    get_service(CartService).clear(get_current_user_id())
    return success_response(None, message="Cart cleared")
