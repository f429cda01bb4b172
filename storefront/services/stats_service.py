# storefront/services/stats_service.py
from sqlalchemy import func

from ..extensions import db
from ..model import Order, Product
from ..utils.dates import utcnow
from ..utils.money import round_money, ZERO

LOW_STOCK_THRESHOLD = 5
TOP_SELLERS = 5


def order_stats(now=None) -> dict:
    now = now or utcnow()
    month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)

    total = db.session.query(func.count(Order.id)).scalar() or 0
    paid = db.session.query(func.count(Order.id)).filter(Order.is_paid.is_(True)).scalar() or 0
    delivered = db.session.query(func.count(Order.id)).filter(Order.is_delivered.is_(True)).scalar() or 0
    revenue = db.session.query(func.sum(Order.total_order_price)).filter(Order.is_paid.is_(True)).scalar()
    monthly = (
        db.session.query(func.sum(Order.total_order_price))
        .filter(Order.is_paid.is_(True), Order.paid_at >= month_start)
        .scalar()
    )
    by_payment = (
        db.session.query(Order.payment_type, func.count(Order.id), func.sum(Order.total_order_price))
        .group_by(Order.payment_type)
        .all()
    )
    return {
        "total_orders": total,
        "paid_orders": paid,
        "pending_payment": total - paid,
        "delivered_orders": delivered,
        "total_revenue": float(round_money(revenue or ZERO)),
        "monthly_revenue": float(round_money(monthly or ZERO)),
        "by_payment_type": [
            {"payment_type": ptype, "count": count, "total": float(round_money(amount or ZERO))}
            for ptype, count, amount in by_payment
        ],
    }


def product_stats() -> dict:
    total = db.session.query(func.count(Product.id)).scalar() or 0
    out_of_stock = db.session.query(func.count(Product.id)).filter(Product.stock == 0).scalar() or 0
    low_stock = (
        db.session.query(func.count(Product.id))
        .filter(Product.stock > 0, Product.stock <= LOW_STOCK_THRESHOLD)
        .scalar() or 0
    )
    units_sold = db.session.query(func.sum(Product.sold)).scalar() or 0
    rentable = db.session.query(func.count(Product.id)).filter(Product.is_rentable.is_(True)).scalar() or 0
    top = Product.query.filter(Product.sold > 0).order_by(Product.sold.desc(), Product.id.asc()).limit(TOP_SELLERS)
    return {
        "total_products": total,
        "out_of_stock": out_of_stock,
        "low_stock": low_stock,
        "units_sold": int(units_sold),
        "rentable_products": rentable,
        "top_sellers": [dict(p.as_summary(), sold=p.sold) for p in top],
    }
