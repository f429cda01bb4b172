# storefront/services/coupon_service.py
from decimal import InvalidOperation
from sqlalchemy import func
from ..extensions import db
from ..errors import ValidationError, BusinessRuleError, NotFoundError
from ..model import Coupon
from ..utils.dates import parse_iso8601
from ..utils.money import D


def _parse_discount(raw):
    try:
        value = D(raw)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError("discount must be numeric")
    if value <= 0 or value > 100:
        raise ValidationError("discount must be > 0 and <= 100")
    return value


def _parse_expiry(raw):
    expires_at = parse_iso8601(raw)
    if not expires_at:
        raise ValidationError("Invalid datetime format for expires_at")
    return expires_at


def _ensure_unique_code(code: str, exclude_id: int | None = None):
    q = Coupon.query.filter(func.lower(Coupon.code) == code.lower())
    if exclude_id is not None:
        q = q.filter(Coupon.id != exclude_id)
    if q.first():
        raise BusinessRuleError("Coupon code already exists")


def create_coupon_from_payload(data: dict) -> Coupon:
    code = (data.get("code") or "").strip()
    if not code:
        raise ValidationError("code is required")
    if data.get("discount") is None:
        raise ValidationError("discount is required")
    if not data.get("expires_at"):
        raise ValidationError("expires_at is required")

    discount = _parse_discount(data.get("discount"))
    expires_at = _parse_expiry(data.get("expires_at"))
    _ensure_unique_code(code)

    c = Coupon(code=code, discount=discount, expires_at=expires_at)
    db.session.add(c)
    db.session.commit()
    return c


def update_coupon_from_payload(coupon_id: int, data: dict) -> Coupon:
    c = db.session.get(Coupon, coupon_id)
    if not c:
        raise NotFoundError("coupon not found")
    if "code" in data:
        code = (data.get("code") or "").strip()
        if not code:
            raise ValidationError("code cannot be empty")
        _ensure_unique_code(code, exclude_id=c.id)
        c.code = code
    if "discount" in data:
        c.discount = _parse_discount(data.get("discount"))
    if "expires_at" in data:
        c.expires_at = _parse_expiry(data.get("expires_at"))
    db.session.commit()
    return c
