# storefront/services/cart_service.py
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import NotFoundError, ValidationError, InsufficientStock, BusinessRuleError
from ..model import Cart, CartItem, Product, Coupon
from ..utils.money import D, ZERO, round_money, apply_percent_discount
from ..utils.dates import utcnow


def get_cart(user_id: int) -> Cart | None:
    return Cart.query.filter_by(user_id=user_id).first()


def get_or_create_cart(user_id: int) -> Cart:
    cart = get_cart(user_id)
    if cart is None:
        cart = Cart(user_id=user_id, total_cart_price=ZERO)
        db.session.add(cart)
        try:
            db.session.flush()
        except IntegrityError:
            # a concurrent request created it first
            db.session.rollback()
            cart = require_cart(user_id)
    return cart


def require_cart(user_id: int) -> Cart:
    cart = get_cart(user_id)
    if cart is None:
        raise NotFoundError("Cart not found")
    return cart


def _parse_quantity(raw, default=None) -> int:
    if raw is None:
        if default is None:
            raise ValidationError("quantity is required")
        return default
    if isinstance(raw, bool) or (isinstance(raw, float) and not raw.is_integer()):
        raise ValidationError("Quantity must be a positive integer")
    try:
        qty = int(raw)
    except (TypeError, ValueError):
        raise ValidationError("Quantity must be a positive integer")
    if qty < 1:
        raise ValidationError("Quantity must be a positive integer")
    return qty


def _check_stock(product: Product, quantity: int):
    if quantity > int(product.stock or 0):
        raise InsufficientStock(
            f"Insufficient stock for {product.title}",
            data={"product_id": product.id, "available": int(product.stock or 0), "requested": quantity},
        )


def clear_discount(cart: Cart):
    cart.coupon_code = None
    cart.discount = None
    cart.total_price_after_discount = None


def recalc_cart(cart: Cart):
    """Total is a fold over the line items; discount is recomputed from the stored percent."""
    cart.total_cart_price = round_money(sum((i.line_total_dec() for i in cart.items), ZERO))
    if cart.discount is not None:
        cart.total_price_after_discount = apply_percent_discount(cart.total_cart_price, cart.discount)
    else:
        cart.total_price_after_discount = None


def _contents_changed(cart: Cart):
    # any change to the line items invalidates an applied coupon
    clear_discount(cart)
    recalc_cart(cart)


def add_item(user_id: int, product_id, quantity=None) -> Cart:
    qty = _parse_quantity(quantity, default=1)
    try:
        product_id = int(product_id)
    except (TypeError, ValueError):
        raise ValidationError("Invalid product id")

    product = db.session.get(Product, product_id)
    if not product:
        raise NotFoundError("Product not found")

    cart = get_cart(user_id)
    existing = cart.find_product(product.id) if cart else None
    new_qty = qty + (existing.quantity if existing else 0)
    # validate before touching anything so a rejected add leaves the cart as it was
    _check_stock(product, new_qty)

    if cart is None:
        cart = get_or_create_cart(user_id)
    if existing:
        existing.quantity = new_qty
    else:
        cart.items.append(CartItem(product_id=product.id, product=product, quantity=qty, price=product.effective_price()))

    _contents_changed(cart)
    db.session.commit()
    return cart


def update_quantity(user_id: int, item_id: int, quantity) -> Cart:
    qty = _parse_quantity(quantity)
    cart = require_cart(user_id)
    item = cart.find_item(item_id)
    if not item:
        raise NotFoundError("Product not in cart")
    product = item.product or db.session.get(Product, item.product_id)
    if not product:
        raise NotFoundError("Product not found")
    _check_stock(product, qty)

    item.quantity = qty
    _contents_changed(cart)
    db.session.commit()
    return cart


def remove_item(user_id: int, item_id: int) -> Cart:
    cart = require_cart(user_id)
    item = cart.find_item(item_id)
    if not item:
        raise NotFoundError("Product not in cart")
    cart.items.remove(item)
    _contents_changed(cart)
    db.session.commit()
    return cart


def clear_cart(user_id: int):
    cart = require_cart(user_id)
    db.session.delete(cart)
    db.session.commit()


def find_valid_coupon(code: str) -> Coupon:
    code = (code or "").strip()
    if not code:
        raise ValidationError("Coupon code is required")
    coupon = Coupon.query.filter(db.func.lower(Coupon.code) == code.lower()).first()
    if not coupon or coupon.is_expired(utcnow()):
        raise BusinessRuleError("Coupon is invalid or expired")
    return coupon


def apply_coupon(user_id: int, code: str) -> Cart:
    """Coupons stay reusable until they expire; applying one never consumes it."""
    coupon = find_valid_coupon(code)
    cart = require_cart(user_id)
    if not cart.items:
        raise BusinessRuleError("Cart is empty")
    cart.coupon_code = coupon.code
    cart.discount = D(coupon.discount)
    recalc_cart(cart)
    db.session.commit()
    return cart


def remove_coupon(user_id: int) -> Cart:
    cart = require_cart(user_id)
    clear_discount(cart)
    recalc_cart(cart)
    db.session.commit()
    return cart
