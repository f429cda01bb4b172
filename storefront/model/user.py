# --- storefront/model/user.py ---
from sqlalchemy.sql import func
from ..extensions import db
from ..utils.dates import isoformat

wishlist_items = db.Table(
    "wishlist_item",
    db.Column("user_id", db.Integer, db.ForeignKey("user.id", ondelete="CASCADE"), primary_key=True),
    db.Column("product_id", db.Integer, db.ForeignKey("product.id", ondelete="CASCADE"), primary_key=True),
    db.Column("created_at", db.DateTime, server_default=func.now()),
)


class User(db.Model):
    __tablename__ = "user"
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(180), nullable=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False, default="")
    role = db.Column(db.String(50), nullable=False, default="user", index=True)  # roles: user, admin
    phone = db.Column(db.String(50))
    profile_image = db.Column(db.String(1024))
    is_blocked = db.Column(db.Boolean, default=False, nullable=False)
    password_changed_at = db.Column(db.DateTime, nullable=True)
    is_verified = db.Column(db.Boolean, default=False, nullable=False)

    # pending password reset; the code itself is stored hashed
    password_reset_code = db.Column(db.String(255), nullable=True)
    password_reset_expires = db.Column(db.DateTime, nullable=True)
    password_reset_verified = db.Column(db.Boolean, default=False, nullable=False)
    password_reset_attempts = db.Column(db.Integer, default=0, nullable=False)

    created_at = db.Column(db.DateTime, server_default=func.now())
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())

    addresses = db.relationship(
        "Address",
        backref="user",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="Address.id.asc()",
    )
    wishlist = db.relationship("Product", secondary=wishlist_items, lazy="selectin")

    def as_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "role": self.role,
            "phone": self.phone,
            "profile_image": self.profile_image,
            "is_blocked": self.is_blocked,
            "is_verified": self.is_verified,
            "created_at": isoformat(self.created_at),
        }


class Address(db.Model):
    __tablename__ = "address"
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id", ondelete="CASCADE"), nullable=False, index=True)
    alias = db.Column(db.String(64))
    city = db.Column(db.String(120), nullable=False)
    street = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(50))

    def as_dict(self):
        return {
            "id": self.id,
            "alias": self.alias,
            "city": self.city,
            "street": self.street,
            "phone": self.phone,
        }


class RefreshToken(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id", ondelete="CASCADE"), nullable=False, index=True)
    token = db.Column(db.String(64), unique=True, nullable=False, index=True)
    expires_at = db.Column(db.DateTime, nullable=False)
