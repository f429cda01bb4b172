# storefront/model/product.py
from sqlalchemy.sql import func
from ..extensions import db
from ..utils.dates import isoformat
from ..utils.money import D, as_float


class Product(db.Model):
    __tablename__ = "product"
    __table_args__ = (
        db.CheckConstraint("stock >= 0", name="ck_product_stock_non_negative"),
        db.CheckConstraint("rental_stock >= 0", name="ck_product_rental_stock_non_negative"),
    )

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(100), nullable=False, index=True)
    slug = db.Column(db.String(255), index=True)
    description = db.Column(db.Text, nullable=False)
    image_cover = db.Column(db.String(1024))

    price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    price_after_discount = db.Column(db.Numeric(12, 2), nullable=True)
    stock = db.Column(db.Integer, nullable=False, default=0)
    sold = db.Column(db.Integer, nullable=False, default=0)

    ratings_average = db.Column(db.Float, nullable=True)
    ratings_quantity = db.Column(db.Integer, nullable=False, default=0)

    # rental attributes
    is_rentable = db.Column(db.Boolean, nullable=False, default=False)
    rental_price_per_day = db.Column(db.Numeric(12, 2), nullable=True)
    rental_deposit = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    available_for_rental = db.Column(db.Boolean, nullable=False, default=True)
    rental_stock = db.Column(db.Integer, nullable=False, default=0)

    category_id = db.Column(db.Integer, db.ForeignKey("category.id"), nullable=False, index=True)
    subcategory_id = db.Column(db.Integer, db.ForeignKey("subcategory.id"), nullable=True, index=True)
    brand_id = db.Column(db.Integer, db.ForeignKey("brand.id"), nullable=True, index=True)

    created_at = db.Column(db.DateTime, server_default=func.now())
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())

    images = db.relationship(
        "ProductImage",
        backref="product",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="ProductImage.id.asc()",
    )
    category = db.relationship("Category", backref=db.backref("products", lazy=True), lazy="joined")
    subcategory = db.relationship("SubCategory", lazy="joined")
    brand = db.relationship("Brand", backref=db.backref("products", lazy=True), lazy="joined")

    def effective_price(self):
        """Unit price a buyer pays right now."""
        if self.price_after_discount is not None:
            return D(self.price_after_discount)
        return D(self.price)

    def as_summary(self):
        return {
            "id": self.id,
            "title": self.title,
            "image_cover": self.image_cover,
            "price": as_float(self.price),
            "price_after_discount": as_float(self.price_after_discount),
            "stock": self.stock,
        }

    def as_api(self):
        return {
            "id": self.id,
            "title": self.title,
            "slug": self.slug,
            "description": self.description,
            "image_cover": self.image_cover,
            "images": [img.image_url for img in self.images],
            "price": as_float(self.price),
            "price_after_discount": as_float(self.price_after_discount),
            "stock": self.stock,
            "sold": self.sold,
            "ratings_average": self.ratings_average,
            "ratings_quantity": self.ratings_quantity,
            "is_rentable": self.is_rentable,
            "rental_price_per_day": as_float(self.rental_price_per_day),
            "rental_deposit": as_float(self.rental_deposit),
            "available_for_rental": self.available_for_rental,
            "rental_stock": self.rental_stock,
            "category": self.category.as_ref() if self.category else None,
            "subcategory": self.subcategory.as_ref() if self.subcategory else None,
            "brand": self.brand.as_ref() if self.brand else None,
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }


class ProductImage(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("product.id"), nullable=False, index=True)
    image_url = db.Column(db.String(1024), nullable=False)
