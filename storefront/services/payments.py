# storefront/services/payments.py
"""Thin wrapper around the Stripe SDK; everything else talks to this module."""
import json

import stripe
from flask import current_app

from ..errors import UpstreamError, ValidationError
from ..utils.money import to_cents


def _client():
    key = current_app.config.get("STRIPE_SECRET_KEY")
    if not key:
        raise UpstreamError("Payment provider is not configured")
    stripe.api_key = key
    return stripe


def create_checkout_session(cart, user, shipping_address: dict):
    """Hosted checkout session; the order is created later from its metadata."""
    client = _client()
    client_url = current_app.config.get("CLIENT_URL", "http://localhost:3000").rstrip("/")
    currency = current_app.config.get("STRIPE_CURRENCY", "usd")

    line_items = []
    for item in cart.items:
        product = item.product
        title = product.title if product else "Product"
        line_items.append({
            "price_data": {
                "currency": currency,
                "product_data": {
                    "name": title,
                    "images": [product.image_cover] if product and product.image_cover else [],
                },
                "unit_amount": to_cents(item.price),
            },
            "quantity": item.quantity,
        })

    params = {
        "mode": "payment",
        "payment_method_types": ["card"],
        "line_items": line_items,
        "customer_email": user.email,
        "client_reference_id": str(cart.id),
        "success_url": f"{client_url}/payment-success?session_id={{CHECKOUT_SESSION_ID}}",
        "cancel_url": f"{client_url}/cart?canceled=true",
        "metadata": {
            "cart_id": str(cart.id),
            "user_id": str(user.id),
            "shipping_address": json.dumps(shipping_address or {}),
        },
    }
    try:
        if cart.total_price_after_discount is not None and cart.discount:
            # a percentage coupon is applied to the whole session
            coupon = client.Coupon.create(percent_off=float(cart.discount), duration="once")
            params["discounts"] = [{"coupon": coupon.id}]
        session = client.checkout.Session.create(**params)
    except stripe.StripeError as e:
        current_app.logger.error("Stripe session creation failed for cart %s: %s", cart.id, e)
        raise UpstreamError(f"Failed to create payment session: {e.user_message or e}")
    current_app.logger.info("Created payment session %s for cart %s", session.id, cart.id)
    return session


def construct_event(payload: bytes, signature: str | None):
    secret = current_app.config.get("STRIPE_WEBHOOK_SECRET")
    if not secret:
        raise UpstreamError("Webhook secret is not configured")
    if not signature:
        raise ValidationError("Missing Stripe-Signature header")
    _client()
    try:
        return stripe.Webhook.construct_event(payload, signature, secret)
    except ValueError:
        raise ValidationError("Webhook Error: invalid payload")
    except stripe.SignatureVerificationError as e:
        current_app.logger.warning("Webhook signature verification failed: %s", e)
        raise ValidationError(f"Webhook Error: {e}")


def retrieve_session(session_id: str):
    client = _client()
    try:
        return client.checkout.Session.retrieve(session_id)
    except stripe.InvalidRequestError:
        raise ValidationError("Unknown payment session")
    except stripe.StripeError as e:
        current_app.logger.error("Stripe session lookup failed for %s: %s", session_id, e)
        raise UpstreamError("Failed to verify payment")


def session_metadata(session) -> dict:
    """Normalized {cart_id, user_id, shipping_address} from a session object or dict."""
    meta = dict(session_field(session, "metadata") or {})
    raw_address = meta.get("shipping_address") or "{}"
    try:
        address = json.loads(raw_address)
    except (TypeError, ValueError):
        address = {}
    try:
        cart_id = int(meta["cart_id"]) if meta.get("cart_id") else None
        user_id = int(meta["user_id"]) if meta.get("user_id") else None
    except (TypeError, ValueError):
        raise ValidationError("Payment session has malformed metadata")
    return {"cart_id": cart_id, "user_id": user_id, "shipping_address": address}


def session_field(session, key):
    try:
        return session[key]
    except (KeyError, TypeError):
        return None
