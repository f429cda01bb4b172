# storefront/model/cart.py
from __future__ import annotations
from decimal import Decimal
from sqlalchemy.sql import func
from ..extensions import db
from ..utils.dates import isoformat
from ..utils.money import D, round_money, as_float


class Cart(db.Model):
    __tablename__ = "cart"

    id = db.Column(db.Integer, primary_key=True)
    # one cart per user, enforced by the database
    user_id = db.Column(db.Integer, db.ForeignKey("user.id", ondelete="CASCADE"), nullable=False, unique=True, index=True)

    total_cart_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    coupon_code = db.Column(db.String(64), nullable=True)
    discount = db.Column(db.Numeric(5, 2), nullable=True)  # percent
    total_price_after_discount = db.Column(db.Numeric(12, 2), nullable=True)

    created_at = db.Column(db.DateTime, server_default=func.now())
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())

    items = db.relationship(
        "CartItem",
        backref="cart",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="CartItem.id.asc()",
    )

    # --------- money helpers / totals ----------
    def payable_dec(self) -> Decimal:
        if self.total_price_after_discount is not None:
            return D(self.total_price_after_discount)
        return D(self.total_cart_price)

    def find_item(self, item_id: int) -> CartItem | None:
        return next((i for i in self.items if i.id == item_id), None)

    def find_product(self, product_id: int) -> CartItem | None:
        return next((i for i in self.items if i.product_id == product_id), None)

    def as_api(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "items": [i.as_api() for i in self.items],
            "num_of_items": len(self.items),
            "total_cart_price": as_float(self.total_cart_price),
            "coupon": self.coupon_code,
            "discount": as_float(self.discount),
            "total_price_after_discount": as_float(self.total_price_after_discount),
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }

    @staticmethod
    def empty_api(user_id: int):
        return {
            "id": None,
            "user_id": user_id,
            "items": [],
            "num_of_items": 0,
            "total_cart_price": 0.0,
            "coupon": None,
            "discount": None,
            "total_price_after_discount": None,
            "created_at": None,
            "updated_at": None,
        }


class CartItem(db.Model):
    __tablename__ = "cart_item"
    __table_args__ = (
        db.UniqueConstraint("cart_id", "product_id", name="uq_cart_item_product"),
        db.CheckConstraint("quantity >= 1", name="ck_cart_item_quantity_positive"),
    )

    id = db.Column(db.Integer, primary_key=True)
    cart_id = db.Column(db.Integer, db.ForeignKey("cart.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("product.id"), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False, default=1)
    price = db.Column(db.Numeric(12, 2), nullable=False)  # unit price snapshot

    product = db.relationship("Product", lazy="joined")

    def line_total_dec(self) -> Decimal:
        return round_money(D(self.price) * Decimal(self.quantity))

    def as_api(self):
        return {
            "id": self.id,
            "product": self.product.as_summary() if self.product else {"id": self.product_id},
            "quantity": self.quantity,
            "price": as_float(self.price),
            "line_total": float(self.line_total_dec()),
        }
