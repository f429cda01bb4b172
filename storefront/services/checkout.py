# storefront/services/checkout.py
"""
Cart -> order conversion shared by cash checkout, the payment webhook and
the payment polling fallback.

`place_order` runs as one transaction: snapshot the cart into an order,
decrement stock / increment sold with a conditional UPDATE per line, delete
the cart. Any failure rolls everything back. Orders tied to a payment
session are created at most once per session.
"""
import secrets

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import (
    AuthorizationError, BusinessRuleError, InsufficientStock, NotFoundError, ValidationError,
)
from ..model import Cart, Coupon, Order, OrderItem, Product, PAYMENT_TYPES
from ..utils.dates import utcnow
from . import cart_service
from .payments import session_metadata, session_field

ADDRESS_FIELDS = ("city", "street", "phone")


def _gen_order_code():
    return "ORD-" + utcnow().strftime("%Y%m%d-%H%M%S%f")[:18] + "-" + secrets.token_hex(2).upper()


def normalize_shipping_address(raw) -> dict:
    if not isinstance(raw, dict):
        raise ValidationError("shipping_address is required")
    address = {k: (str(raw.get(k) or "").strip() or None) for k in ADDRESS_FIELDS}
    missing = [k for k in ("city", "street") if not address[k]]
    if missing:
        raise ValidationError(f"shipping_address missing: {', '.join(missing)}")
    return address


def find_order_for_session(session_id: str) -> Order | None:
    return Order.query.filter_by(payment_session_id=session_id).first()


def load_checkout_cart(cart_id: int, user) -> Cart:
    """Ownership, emptiness, stock and coupon checks done before money moves."""
    cart = db.session.get(Cart, cart_id)
    if not cart:
        raise NotFoundError("Cart not found")
    if cart.user_id != user.id:
        raise AuthorizationError("Not authorized to access this cart")
    if not cart.items:
        raise BusinessRuleError("Cart is empty")

    for item in cart.items:
        if item.product is None:
            raise NotFoundError(f"Product {item.product_id} no longer exists")
        if item.quantity > int(item.product.stock or 0):
            raise InsufficientStock(
                f"Insufficient stock for {item.product.title}",
                data={"product_id": item.product_id, "available": item.product.stock, "requested": item.quantity},
            )

    if cart.coupon_code:
        coupon = Coupon.query.filter(db.func.lower(Coupon.code) == cart.coupon_code.lower()).first()
        if not coupon or coupon.is_expired():
            # drop the stale discount so the client sees the real total
            cart_service.clear_discount(cart)
            cart_service.recalc_cart(cart)
            db.session.commit()
            raise BusinessRuleError("Coupon applied to this cart has expired")
    return cart


def _decrement_stock(cart: Cart):
    for item in cart.items:
        result = db.session.execute(
            update(Product)
            .where(Product.id == item.product_id, Product.stock >= item.quantity)
            .values(stock=Product.stock - item.quantity, sold=Product.sold + item.quantity)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            title = item.product.title if item.product else item.product_id
            raise InsufficientStock(f"{title} just sold out", data={"product_id": item.product_id})


def place_order(cart_id: int, user_id: int, payment_type: str, shipping_address: dict,
                session_id: str | None = None, payment_intent_id: str | None = None):
    """Returns (order, created). Idempotent per payment session id."""
    if payment_type not in PAYMENT_TYPES:
        raise ValidationError(f"Unknown payment type {payment_type}")

    if session_id:
        existing = find_order_for_session(session_id)
        if existing:
            current_app.logger.info("Payment session %s already produced order %s", session_id, existing.id)
            return existing, False

    cart = db.session.get(Cart, cart_id)
    if not cart:
        raise NotFoundError("Cart not found")
    if cart.user_id != user_id:
        raise AuthorizationError("Not authorized to access this cart")
    if not cart.items:
        raise BusinessRuleError("Cart is empty")

    paid = payment_type == "card"
    order = Order(
        code=_gen_order_code(),
        user_id=user_id,
        shipping_address=shipping_address,
        total_order_price=cart.payable_dec(),
        coupon_code=cart.coupon_code,
        payment_type=payment_type,
        is_paid=paid,
        paid_at=utcnow() if paid else None,
        payment_session_id=session_id,
        payment_intent_id=payment_intent_id,
        cart_id=cart.id,
    )
    for item in cart.items:
        order.items.append(OrderItem(
            product_id=item.product_id,
            title=item.product.title if item.product else None,
            image_cover=item.product.image_cover if item.product else None,
            quantity=item.quantity,
            price=item.price,
        ))

    try:
        db.session.add(order)
        _decrement_stock(cart)
        db.session.delete(cart)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        if session_id:
            # lost the race against a concurrent confirmation of the same session
            existing = find_order_for_session(session_id)
            if existing:
                return existing, False
        raise
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info(
        "Order %s created from cart %s (%s, total=%s)", order.code, cart_id, payment_type, order.total_order_price,
    )
    return order, True


def confirm_paid_session(session):
    """Turn a paid Checkout Session into an order (webhook and polling share this)."""
    meta = session_metadata(session)
    if not meta["cart_id"] or not meta["user_id"]:
        raise ValidationError("Payment session is missing cart metadata")
    payment_intent = session_field(session, "payment_intent")
    return place_order(
        cart_id=meta["cart_id"],
        user_id=meta["user_id"],
        payment_type="card",
        shipping_address=meta["shipping_address"],
        session_id=session["id"],
        payment_intent_id=payment_intent if isinstance(payment_intent, str) else None,
    )
