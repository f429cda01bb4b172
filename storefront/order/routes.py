# storefront/order/routes.py
from flask import request, current_app
from flask_jwt_extended import current_user

from . import bp
from ..extensions import db
from ..errors import ApiError, ValidationError, NotFoundError, AuthorizationError, BusinessRuleError
from ..model import Order
from ..services import payments
from ..services.checkout import (
    load_checkout_cart, normalize_shipping_address, place_order, confirm_paid_session, find_order_for_session,
)
from ..utils.api import ok
from ..utils.dates import utcnow
from ..utils.decorators import login_required, admin_required, owner_or_admin
from ..utils.parsing import parse_bool, parse_int

CHECKOUT_COMPLETED = "checkout.session.completed"


def _get_order_or_404(order_id: int) -> Order:
    order = db.session.get(Order, order_id)
    if not order:
        raise NotFoundError("Order not found")
    return order


def _shipping_from_body():
    body = request.get_json(silent=True) or {}
    return normalize_shipping_address(body.get("shipping_address"))


def _order_page(query):
    page = max(parse_int(request.args.get("page"), 1), 1)
    limit = min(max(parse_int(request.args.get("limit"), 20), 1), 100)
    pagination = query.order_by(Order.created_at.desc(), Order.id.desc()).paginate(
        page=page, per_page=limit, error_out=False
    )
    return {
        "items": [o.as_api() for o in pagination.items],
        "meta": {
            "page": pagination.page,
            "pages": pagination.pages or 1,
            "limit": limit,
            "results": len(pagination.items),
            "total": pagination.total,
        },
    }


# ---------- checkout ----------

@bp.post("/<int:cart_id>")
@login_required
def create_cash_order(cart_id: int):
    load_checkout_cart(cart_id, current_user)
    shipping = _shipping_from_body()
    order, _ = place_order(cart_id, current_user.id, "cash", shipping)
    return ok("Order created", {"order": order.as_api()}, status=201)


@bp.post("/checkout-session/<int:cart_id>")
@login_required
def create_checkout_session(cart_id: int):
    cart = load_checkout_cart(cart_id, current_user)
    shipping = _shipping_from_body()
    session = payments.create_checkout_session(cart, current_user, shipping)
    return ok("Checkout session created", {"session_id": session.id, "url": session.url})


@bp.post("/webhook")
def payment_webhook():
    # signature is computed over the exact bytes the provider sent
    event = payments.construct_event(request.get_data(), request.headers.get("Stripe-Signature"))
    event_type = payments.session_field(event, "type")
    if event_type != CHECKOUT_COMPLETED:
        current_app.logger.debug("Ignoring webhook event %s", event_type)
        return ok("Event ignored", {"received": True})

    session = event["data"]["object"]
    try:
        order, created = confirm_paid_session(session)
    except ApiError as e:
        # acknowledge anyway; a retry would hit the same state
        current_app.logger.error(
            "Paid session %s could not be turned into an order: %s", payments.session_field(session, "id"), e.message,
        )
        return ok("Event received, order not created", {"received": True})
    return ok("Event processed", {"received": True, "order_id": order.id, "created": created})


@bp.get("/verify-payment/<session_id>")
@login_required
def verify_payment(session_id: str):
    existing = find_order_for_session(session_id)
    if existing:
        if not owner_or_admin(current_user, existing.user_id):
            raise AuthorizationError("Not authorized to view this order")
        return ok("Payment verified", {"order": existing.as_api()})

    session = payments.retrieve_session(session_id)
    meta = payments.session_metadata(session)
    if meta["user_id"] != current_user.id:
        raise AuthorizationError("Not authorized to verify this payment")
    if payments.session_field(session, "payment_status") != "paid":
        raise BusinessRuleError("Payment not completed yet")

    order, _ = confirm_paid_session(session)
    return ok("Payment verified", {"order": order.as_api()})


# ---------- orders ----------

@bp.get("/me")
@login_required
def my_orders():
    return ok("orders", _order_page(Order.query.filter_by(user_id=current_user.id)))


@bp.get("")
@admin_required
def list_orders():
    q = Order.query
    if "is_paid" in request.args:
        q = q.filter(Order.is_paid == parse_bool(request.args.get("is_paid")))
    if "is_delivered" in request.args:
        q = q.filter(Order.is_delivered == parse_bool(request.args.get("is_delivered")))
    if request.args.get("payment_type"):
        q = q.filter(Order.payment_type == request.args["payment_type"])
    return ok("orders", _order_page(q))


@bp.get("/<int:order_id>")
@login_required
def get_order(order_id: int):
    order = _get_order_or_404(order_id)
    if not owner_or_admin(current_user, order.user_id):
        raise AuthorizationError("Not authorized to view this order")
    return ok("OK", {"order": order.as_api()})


@bp.patch("/<int:order_id>/status")
@admin_required
def update_order_status(order_id: int):
    order = _get_order_or_404(order_id)
    body = request.get_json(silent=True) or {}
    if "is_paid" not in body and "is_delivered" not in body:
        raise ValidationError("Nothing to update: send is_paid and/or is_delivered")

    now = utcnow()
    if "is_paid" in body:
        paid = parse_bool(body.get("is_paid"))
        if paid and not order.is_paid:
            order.paid_at = now
        elif not paid:
            order.paid_at = None
        order.is_paid = paid
    if "is_delivered" in body:
        delivered = parse_bool(body.get("is_delivered"))
        if delivered and not order.is_delivered:
            order.delivered_at = now
        elif not delivered:
            order.delivered_at = None
        order.is_delivered = delivered
    db.session.commit()
    current_app.logger.info("Order %s status -> %s", order.code, order.status)
    return ok("Order status updated", {"order": order.as_api()})
