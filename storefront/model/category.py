# storefront/model/category.py
from sqlalchemy.sql import func
from ..extensions import db
from ..utils.dates import isoformat


# ---------------- CATEGORY ----------------
class Category(db.Model):
    __tablename__ = "category"
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False, unique=True)
    slug = db.Column(db.String(160), index=True)
    description = db.Column(db.Text)
    image_cover = db.Column(db.String(1024))
    created_at = db.Column(db.DateTime, server_default=func.now())
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())

    subcategories = db.relationship("SubCategory", backref="category", lazy=True, cascade="all, delete-orphan")

    def as_ref(self):
        return {"id": self.id, "name": self.name}

    def as_api(self):
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "description": self.description,
            "image_cover": self.image_cover,
            "created_at": isoformat(self.created_at),
        }


# ---------------- SUBCATEGORY ----------------
class SubCategory(db.Model):
    __tablename__ = "subcategory"
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False, unique=True)
    slug = db.Column(db.String(160), index=True)
    category_id = db.Column(db.Integer, db.ForeignKey("category.id"), nullable=False, index=True)
    created_by_id = db.Column(db.Integer, db.ForeignKey("user.id", ondelete="SET NULL"), nullable=True)
    created_at = db.Column(db.DateTime, server_default=func.now())
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())

    def as_ref(self):
        return {"id": self.id, "name": self.name}

    def as_api(self):
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "category_id": self.category_id,
            "created_at": isoformat(self.created_at),
        }
