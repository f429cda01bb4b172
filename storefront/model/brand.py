from sqlalchemy.sql import func
from ..extensions import db
from ..utils.dates import isoformat


class Brand(db.Model):
    __tablename__ = "brand"
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False, unique=True)
    slug = db.Column(db.String(160), index=True)
    logo = db.Column(db.String(1024))
    created_at = db.Column(db.DateTime, server_default=func.now())
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())

    def as_ref(self):
        return {"id": self.id, "name": self.name}

    def as_api(self):
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "logo": self.logo,
            "created_at": isoformat(self.created_at),
        }
