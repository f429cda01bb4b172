# storefront/model/rental.py
from sqlalchemy.sql import func
from ..extensions import db
from ..utils.dates import isoformat
from ..utils.money import as_float

RENTAL_STATUSES = ("pending", "approved", "rejected", "active", "completed", "cancelled")
RETURN_CONDITIONS = ("excellent", "good", "fair", "poor", "damaged")


class RentalRequest(db.Model):
    __tablename__ = "rental_request"
    __table_args__ = (
        db.Index("ix_rental_request_user_status", "user_id", "status"),
        db.Index("ix_rental_request_product_status", "product_id", "status"),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id", ondelete="CASCADE"), nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey("product.id"), nullable=False)

    # personal info
    full_name = db.Column(db.String(180), nullable=False)
    phone = db.Column(db.String(50), nullable=False)
    address = db.Column(db.String(255), nullable=False)
    id_card_number = db.Column(db.String(64), nullable=False)

    id_card_front = db.Column(db.String(1024), nullable=False)
    id_card_back = db.Column(db.String(1024), nullable=False)

    requested_start_date = db.Column(db.DateTime, nullable=False)
    requested_end_date = db.Column(db.DateTime, nullable=False)
    rental_days = db.Column(db.Integer, nullable=False)

    daily_rate = db.Column(db.Numeric(12, 2), nullable=False)
    total_price = db.Column(db.Numeric(12, 2), nullable=False)
    deposit_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    admin_notes = db.Column(db.Text)
    approved_by_id = db.Column(db.Integer, db.ForeignKey("user.id", ondelete="SET NULL"), nullable=True)
    approved_at = db.Column(db.DateTime)
    rejected_at = db.Column(db.DateTime)
    actual_start_date = db.Column(db.DateTime)
    actual_end_date = db.Column(db.DateTime)

    returned_at = db.Column(db.DateTime)
    return_condition = db.Column(db.String(16))
    deposit_returned = db.Column(db.Boolean, nullable=False, default=False)
    deposit_returned_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    created_at = db.Column(db.DateTime, server_default=func.now(), index=True)
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())

    user = db.relationship("User", foreign_keys=[user_id], lazy="joined")
    approved_by = db.relationship("User", foreign_keys=[approved_by_id], lazy="joined")
    product = db.relationship("Product", lazy="joined")

    def as_api(self):
        return {
            "id": self.id,
            "user": {"id": self.user.id, "name": self.user.name, "email": self.user.email} if self.user else None,
            "product": {
                "id": self.product.id,
                "title": self.product.title,
                "image_cover": self.product.image_cover,
                "rental_price_per_day": as_float(self.product.rental_price_per_day),
                "rental_deposit": as_float(self.product.rental_deposit),
            } if self.product else None,
            "personal_info": {
                "full_name": self.full_name,
                "phone": self.phone,
                "address": self.address,
                "id_card_number": self.id_card_number,
            },
            "id_card_images": {"front": self.id_card_front, "back": self.id_card_back},
            "requested_start_date": isoformat(self.requested_start_date),
            "requested_end_date": isoformat(self.requested_end_date),
            "rental_days": self.rental_days,
            "daily_rate": as_float(self.daily_rate),
            "total_price": as_float(self.total_price),
            "deposit_amount": as_float(self.deposit_amount),
            "status": self.status,
            "admin_notes": self.admin_notes,
            "approved_by": {"id": self.approved_by.id, "name": self.approved_by.name} if self.approved_by else None,
            "approved_at": isoformat(self.approved_at),
            "rejected_at": isoformat(self.rejected_at),
            "actual_start_date": isoformat(self.actual_start_date),
            "actual_end_date": isoformat(self.actual_end_date),
            "returned_at": isoformat(self.returned_at),
            "return_condition": self.return_condition,
            "deposit_returned": self.deposit_returned,
            "deposit_returned_amount": as_float(self.deposit_returned_amount),
            "created_at": isoformat(self.created_at),
        }
