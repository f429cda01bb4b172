# --- storefront/model/coupon.py ---

from ..extensions import db
from sqlalchemy.sql import func
from ..utils.dates import utcnow, isoformat
from ..utils.money import as_float


class Coupon(db.Model):
    __tablename__ = "coupon"

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(64), unique=True, nullable=False, index=True)
    discount = db.Column(db.Numeric(5, 2), nullable=False)  # percent, (0, 100]
    expires_at = db.Column(db.DateTime, nullable=False, index=True)

    created_at = db.Column(db.DateTime, server_default=func.now())
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())

    def is_expired(self, now=None) -> bool:
        return self.expires_at < (now or utcnow())

    def as_api(self):
        return {
            "id": self.id,
            "code": self.code,
            "discount": as_float(self.discount),
            "expires_at": isoformat(self.expires_at),
            "expired": self.is_expired(),
            "created_at": isoformat(self.created_at),
        }
