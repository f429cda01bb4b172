from sqlalchemy.sql import func
from ..extensions import db
from ..utils.dates import isoformat
from ..utils.money import as_float

PAYMENT_TYPES = ("cash", "card")


class Order(db.Model):
    __tablename__ = "orders"

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(32), unique=True, index=True)  # e.g., "ORD-20251022-103000123"
    user_id = db.Column(db.Integer, db.ForeignKey("user.id", ondelete="SET NULL"), nullable=True, index=True)

    # Shipping snapshot
    shipping_address = db.Column(db.JSON)  # {city, street, phone}

    total_order_price = db.Column(db.Numeric(12, 2), nullable=False)
    coupon_code = db.Column(db.String(64))
    payment_type = db.Column(db.String(8), nullable=False, default="cash")

    is_paid = db.Column(db.Boolean, nullable=False, default=False)
    paid_at = db.Column(db.DateTime)
    is_delivered = db.Column(db.Boolean, nullable=False, default=False)
    delivered_at = db.Column(db.DateTime)

    # a payment session can produce at most one order
    payment_session_id = db.Column(db.String(255), unique=True, nullable=True)
    payment_intent_id = db.Column(db.String(255), nullable=True)

    # Link back for audit/debug (not a FK constraint, the cart is gone after checkout)
    cart_id = db.Column(db.Integer, index=True)

    created_at = db.Column(db.DateTime, server_default=func.now(), index=True)
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())

    user = db.relationship("User", lazy="joined")
    items = db.relationship(
        "OrderItem",
        backref="order",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="OrderItem.id.asc()",
    )

    @property
    def status(self):
        if self.is_delivered:
            return "delivered"
        if self.is_paid:
            return "paid"
        return "created"

    def as_api(self):
        return {
            "id": self.id,
            "code": self.code,
            "status": self.status,
            "user": {"id": self.user.id, "name": self.user.name, "email": self.user.email} if self.user else None,
            "items": [i.as_api() for i in self.items],
            "shipping_address": self.shipping_address,
            "total_order_price": as_float(self.total_order_price),
            "coupon": self.coupon_code,
            "payment_type": self.payment_type,
            "is_paid": self.is_paid,
            "paid_at": isoformat(self.paid_at),
            "is_delivered": self.is_delivered,
            "delivered_at": isoformat(self.delivered_at),
            "payment_session_id": self.payment_session_id,
            "created_at": isoformat(self.created_at),
        }


class OrderItem(db.Model):
    __tablename__ = "order_items"

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)

    product_id = db.Column(db.Integer, index=True)
    title = db.Column(db.String(255))
    image_cover = db.Column(db.String(1024))
    quantity = db.Column(db.Integer, nullable=False)
    price = db.Column(db.Numeric(12, 2), nullable=False)

    def as_api(self):
        return {
            "product_id": self.product_id,
            "title": self.title,
            "image_cover": self.image_cover,
            "quantity": self.quantity,
            "price": as_float(self.price),
        }
