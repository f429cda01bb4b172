# storefront/wishlist/routes.py
from flask import request
from flask_jwt_extended import current_user

from . import bp
from ..extensions import db
from ..errors import ValidationError, NotFoundError
from ..model import Product
from ..utils.api import ok
from ..utils.decorators import login_required


def _listing():
    items = [p.as_summary() for p in current_user.wishlist]
    return {"results": len(items), "wishlist": items}


@bp.get("")
@login_required
def get_wishlist():
    return ok("OK", _listing())


@bp.post("")
@login_required
def add_to_wishlist():
    body = request.get_json(silent=True) or {}
    try:
        product_id = int(body.get("product_id"))
    except (TypeError, ValueError):
        raise ValidationError("product_id is required")
    product = db.session.get(Product, product_id)
    if not product:
        raise NotFoundError("Product not found")
    # adding twice is a no-op
    if product not in current_user.wishlist:
        current_user.wishlist.append(product)
        db.session.commit()
    return ok("Product added successfully to your wishlist", _listing())


@bp.get("/check/<int:product_id>")
@login_required
def check_wishlist(product_id: int):
    in_wishlist = any(p.id == product_id for p in current_user.wishlist)
    return ok("OK", {"product_id": product_id, "in_wishlist": in_wishlist})


@bp.delete("/<int:product_id>")
@login_required
def remove_from_wishlist(product_id: int):
    product = next((p for p in current_user.wishlist if p.id == product_id), None)
    if product is not None:
        current_user.wishlist.remove(product)
        db.session.commit()
    return ok("Product removed successfully from your wishlist", _listing())


@bp.delete("")
@login_required
def clear_wishlist():
    current_user.wishlist.clear()
    db.session.commit()
    return ok("Wishlist cleared", _listing())
