# --- storefront/cart/routes.py ---
from flask import request
from flask_jwt_extended import current_user

from . import bp
from ..model import Cart
from ..services import cart_service
from ..utils.api import ok
from ..utils.decorators import login_required


def _cart_payload(cart):
    return {"cart": cart.as_api()}


@bp.get("")
@login_required
def get_cart():
    cart = cart_service.get_cart(current_user.id)
    if cart is None:
        return ok("Cart is empty", {"cart": Cart.empty_api(current_user.id)})
    return ok("OK", _cart_payload(cart))


@bp.post("")
@login_required
def add_to_cart():
    body = request.get_json(silent=True) or {}
    cart = cart_service.add_item(current_user.id, body.get("product_id"), body.get("quantity"))
    return ok("Product added to cart", _cart_payload(cart))


@bp.put("/<int:item_id>")
@login_required
def update_cart_item(item_id: int):
    body = request.get_json(silent=True) or {}
    cart = cart_service.update_quantity(current_user.id, item_id, body.get("quantity"))
    return ok("Cart updated", _cart_payload(cart))


@bp.delete("/<int:item_id>")
@login_required
def remove_cart_item(item_id: int):
    cart = cart_service.remove_item(current_user.id, item_id)
    return ok("Product removed from cart", _cart_payload(cart))


@bp.delete("")
@login_required
def clear_cart():
    cart_service.clear_cart(current_user.id)
    return ok("Cart cleared", {"cart": Cart.empty_api(current_user.id)})


@bp.post("/apply-coupon")
@login_required
def apply_coupon():
    body = request.get_json(silent=True) or {}
    cart = cart_service.apply_coupon(current_user.id, body.get("code") or body.get("coupon"))
    return ok("Coupon applied", _cart_payload(cart))


@bp.delete("/coupon")
@login_required
def remove_coupon():
    cart = cart_service.remove_coupon(current_user.id)
    return ok("Coupon removed", _cart_payload(cart))
