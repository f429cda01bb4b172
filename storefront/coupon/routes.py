# --- storefront/coupon/routes.py ---
from flask import request

from . import bp
from ..extensions import db
from ..errors import NotFoundError
from ..model import Coupon
from ..services.coupon_service import create_coupon_from_payload, update_coupon_from_payload
from ..utils.api import ok
from ..utils.decorators import admin_required
from ..utils.query import QueryBuilder


def _get_or_404(coupon_id: int) -> Coupon:
    c = db.session.get(Coupon, coupon_id)
    if not c:
        raise NotFoundError("coupon not found")
    return c


@bp.get("")
@admin_required
def list_coupons():
    qb = QueryBuilder(Coupon, request.args, search_fields=("code",), default_limit=20)
    return ok("coupons", qb.run())


@bp.post("")
@admin_required
def create_coupon():
    c = create_coupon_from_payload(request.get_json(silent=True) or {})
    return ok("Coupon created", {"coupon": c.as_api()}, status=201)


@bp.get("/<int:coupon_id>")
@admin_required
def get_coupon(coupon_id: int):
    return ok("OK", {"coupon": _get_or_404(coupon_id).as_api()})


@bp.put("/<int:coupon_id>")
@admin_required
def update_coupon(coupon_id: int):
    c = update_coupon_from_payload(coupon_id, request.get_json(silent=True) or {})
    return ok("Coupon updated", {"coupon": c.as_api()})


@bp.delete("/<int:coupon_id>")
@admin_required
def delete_coupon(coupon_id: int):
    c = _get_or_404(coupon_id)
    db.session.delete(c)
    db.session.commit()
    return ok("Coupon deleted", {"id": coupon_id})
