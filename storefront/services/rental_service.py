# storefront/services/rental_service.py
import math
from datetime import datetime
from decimal import Decimal, InvalidOperation

from flask import current_app
from sqlalchemy import func, update

from ..extensions import db
from ..errors import BusinessRuleError, NotFoundError, ValidationError
from ..model import Product, RentalRequest, RENTAL_STATUSES, RETURN_CONDITIONS
from ..utils.dates import parse_iso8601, utcnow
from ..utils.money import D, round_money, ZERO

PERSONAL_INFO_FIELDS = ("full_name", "phone", "address", "id_card_number")
SECONDS_PER_DAY = 24 * 3600

# rejected, completed and cancelled are final
ALLOWED_TRANSITIONS = {
    "pending": ("approved", "rejected", "cancelled"),
    "approved": ("active", "completed", "rejected", "cancelled"),
    "active": ("completed",),
}


def rental_days_between(start: datetime, end: datetime) -> int:
    """Whole days, partial days rounded up."""
    return math.ceil((end - start).total_seconds() / SECONDS_PER_DAY)


def rental_price(days: int, daily_rate) -> Decimal:
    return round_money(D(daily_rate) * days)


def _parse_dates(raw_start, raw_end, now=None):
    start = parse_iso8601(raw_start)
    end = parse_iso8601(raw_end)
    if not start or not end:
        raise ValidationError("requested_start_date and requested_end_date must be ISO-8601 dates")
    today = (now or utcnow()).replace(hour=0, minute=0, second=0, microsecond=0)
    if start < today:
        raise BusinessRuleError("Start date cannot be in the past")
    if end <= start:
        raise BusinessRuleError("End date must be after start date")
    return start, end


def create_request(user, data: dict, id_card_front: str | None, id_card_back: str | None) -> RentalRequest:
    try:
        product_id = int(data.get("product_id"))
    except (TypeError, ValueError):
        raise ValidationError("product_id is required")

    info = {k: (str(data.get(k) or "").strip()) for k in PERSONAL_INFO_FIELDS}
    missing = [k for k, v in info.items() if not v]
    if missing:
        raise ValidationError(f"Missing personal info: {', '.join(missing)}")

    product = db.session.get(Product, product_id)
    if not product:
        raise NotFoundError("Product not found")
    if not product.is_rentable or product.rental_price_per_day is None:
        raise BusinessRuleError("This product is not available for rental")
    if not product.available_for_rental or int(product.rental_stock or 0) <= 0:
        raise BusinessRuleError("Product is not currently available for rental")

    start, end = _parse_dates(data.get("requested_start_date"), data.get("requested_end_date"))

    if not id_card_front or not id_card_back:
        raise ValidationError("Both sides of ID card images are required")

    days = rental_days_between(start, end)
    rr = RentalRequest(
        user_id=user.id,
        product_id=product.id,
        requested_start_date=start,
        requested_end_date=end,
        rental_days=days,
        daily_rate=D(product.rental_price_per_day),
        total_price=rental_price(days, product.rental_price_per_day),
        deposit_amount=D(product.rental_deposit or 0),
        id_card_front=id_card_front,
        id_card_back=id_card_back,
        **info,
    )
    db.session.add(rr)
    db.session.commit()
    current_app.logger.info("Rental request %s created for product %s by user %s", rr.id, product.id, user.id)
    return rr


def _adjust_rental_stock(product_id: int, delta: int):
    stmt = update(Product).where(Product.id == product_id)
    if delta < 0:
        stmt = stmt.where(Product.rental_stock >= -delta)
    result = db.session.execute(
        stmt.values(rental_stock=Product.rental_stock + delta).execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise BusinessRuleError("No rental stock left for this product")


def update_status(rr: RentalRequest, status: str, admin, admin_notes: str | None = None) -> RentalRequest:
    if status not in RENTAL_STATUSES:
        raise ValidationError("Invalid status")
    previous = rr.status
    if status not in ALLOWED_TRANSITIONS.get(previous, ()):
        raise BusinessRuleError(f"Cannot change rental status from {previous} to {status}")
    # stock is held from approval until the item comes back or the rental is called off
    holds_stock = previous in ("approved", "active")

    try:
        if status == "approved" and not holds_stock:
            _adjust_rental_stock(rr.product_id, -1)
            rr.approved_by_id = admin.id
            rr.approved_at = utcnow()
            rr.actual_start_date = rr.requested_start_date
            rr.actual_end_date = rr.requested_end_date
        elif status == "rejected":
            rr.rejected_at = utcnow()
            if holds_stock:
                _adjust_rental_stock(rr.product_id, 1)
        elif status == "completed":
            rr.returned_at = utcnow()
            if holds_stock:
                _adjust_rental_stock(rr.product_id, 1)
        elif status == "cancelled" and holds_stock:
            _adjust_rental_stock(rr.product_id, 1)

        rr.status = status
        if admin_notes:
            rr.admin_notes = admin_notes
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    current_app.logger.info("Rental request %s: %s -> %s", rr.id, previous, status)
    return rr


def cancel_by_owner(rr: RentalRequest) -> RentalRequest:
    if rr.status != "pending":
        raise BusinessRuleError("Only pending rental requests can be cancelled")
    rr.status = "cancelled"
    db.session.commit()
    return rr


def record_return(rr: RentalRequest, condition: str, deposit_returned_amount, admin_notes: str | None = None):
    if rr.status != "completed":
        raise BusinessRuleError("Can only update return info for completed rentals")
    if condition not in RETURN_CONDITIONS:
        raise ValidationError("Invalid return condition")
    try:
        amount = round_money(deposit_returned_amount or 0)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError("deposit_returned_amount must be numeric")
    if amount < 0 or amount > D(rr.deposit_amount or 0):
        raise ValidationError("deposit_returned_amount must be between 0 and the deposit")

    rr.return_condition = condition
    rr.deposit_returned_amount = amount
    rr.deposit_returned = amount > 0
    if admin_notes:
        rr.admin_notes = admin_notes
    db.session.commit()
    return rr


def stats(now=None) -> dict:
    now = now or utcnow()
    rows = (
        db.session.query(RentalRequest.status, func.count(RentalRequest.id), func.sum(RentalRequest.total_price))
        .group_by(RentalRequest.status)
        .all()
    )
    month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    monthly = (
        db.session.query(func.sum(RentalRequest.total_price))
        .filter(RentalRequest.status.in_(("completed", "active")), RentalRequest.created_at >= month_start)
        .scalar()
    )
    return {
        "total_requests": sum(count for _, count, _ in rows),
        "status_breakdown": [
            {"status": status, "count": count, "total_revenue": float(round_money(revenue or ZERO))}
            for status, count, revenue in rows
        ],
        "monthly_revenue": float(round_money(monthly or ZERO)),
    }
