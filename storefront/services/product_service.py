# storefront/services/product_service.py
"""
Product writes and spreadsheet export / import.

Routes and the `flask export-products` / `flask import-products` commands
both go through here so the column layout stays in one place.
"""
from decimal import Decimal, InvalidOperation
from io import BytesIO

import pandas as pd
from flask import current_app

from ..extensions import db
from ..errors import ValidationError, NotFoundError
from ..model import Product, ProductImage, Category, SubCategory, Brand, CartItem, Cart, wishlist_items
from ..utils.money import round_money
from ..utils.parsing import slugify, parse_bool, parse_opt_int
from . import cart_service

# spreadsheet header -> model attribute
EXPORT_COLUMNS = {
    "ID": "id",
    "Title": "title",
    "Slug": "slug",
    "Description": "description",
    "Price": "price",
    "Price After Discount": "price_after_discount",
    "Stock": "stock",
    "Sold": "sold",
    "Category ID": "category_id",
    "Subcategory ID": "subcategory_id",
    "Brand ID": "brand_id",
    "Is Rentable": "is_rentable",
    "Rental Price Per Day": "rental_price_per_day",
    "Rental Deposit": "rental_deposit",
    "Rental Stock": "rental_stock",
    "Image Cover": "image_cover",
}
REQUIRED_IMPORT_COLUMNS = ("Title", "Description", "Price", "Stock", "Category ID")
XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def get_product_or_404(pid: int) -> Product:
    product = db.session.get(Product, pid)
    if not product:
        raise NotFoundError(f"No product for this id {pid}")
    return product


def _money(raw, field, required=False):
    if raw is None or (isinstance(raw, str) and raw.strip() == ""):
        if required:
            raise ValidationError(f"Product {field} is required")
        return None
    try:
        value = round_money(Decimal(str(raw)))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"Invalid {field}")
    if value < 0:
        raise ValidationError(f"{field} cannot be negative")
    return value


def _count(raw, field, default=None):
    if raw is None or (isinstance(raw, str) and raw.strip() == ""):
        if default is None:
            raise ValidationError(f"Product {field} is required")
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {field}")
    if value < 0:
        raise ValidationError(f"{field} cannot be negative")
    return value


def _ref(model, raw, label, required=False):
    ref_id = parse_opt_int(raw)
    if ref_id is None:
        if required:
            raise ValidationError(f"Product {label} is required")
        return None
    if not db.session.get(model, ref_id):
        raise ValidationError(f"No {label} for this id {ref_id}")
    return ref_id


def apply_product_fields(product: Product, data: dict, partial=False):
    """Validate `data` and copy it onto `product`. `partial` skips missing keys."""
    def given(key):
        return not partial or key in data

    if given("title"):
        title = (data.get("title") or "").strip()
        if len(title) < 3 or len(title) > 100:
            raise ValidationError("Product title must be between 3 and 100 characters")
        product.title = title
        product.slug = slugify(title)
    if given("description"):
        description = (data.get("description") or "").strip()
        if len(description) < 10:
            raise ValidationError("Product description must be at least 10 characters long")
        product.description = description
    if given("price"):
        product.price = _money(data.get("price"), "price", required=True)
    if "price_after_discount" in data:
        product.price_after_discount = _money(data.get("price_after_discount"), "price_after_discount")
    if product.price_after_discount is not None and product.price is not None \
            and product.price_after_discount > product.price:
        raise ValidationError("price_after_discount must not exceed price")
    if given("stock"):
        product.stock = _count(data.get("stock"), "stock")
    if given("category_id"):
        product.category_id = _ref(Category, data.get("category_id"), "category", required=True)
    if "subcategory_id" in data:
        product.subcategory_id = _ref(SubCategory, data.get("subcategory_id"), "subcategory")
    if product.subcategory_id is not None and product.category_id is not None:
        subcategory = db.session.get(SubCategory, product.subcategory_id)
        if subcategory is not None and subcategory.category_id != product.category_id:
            raise ValidationError("Subcategory does not belong to the product category")
    if "brand_id" in data:
        product.brand_id = _ref(Brand, data.get("brand_id"), "brand")

    if "is_rentable" in data:
        product.is_rentable = parse_bool(data.get("is_rentable"))
    if "available_for_rental" in data:
        product.available_for_rental = parse_bool(data.get("available_for_rental"), default=True)
    if "rental_price_per_day" in data:
        product.rental_price_per_day = _money(data.get("rental_price_per_day"), "rental_price_per_day")
    if "rental_deposit" in data:
        product.rental_deposit = _money(data.get("rental_deposit"), "rental_deposit") or 0
    if "rental_stock" in data:
        product.rental_stock = _count(data.get("rental_stock"), "rental_stock", default=0)
    if product.is_rentable and product.rental_price_per_day is None:
        raise ValidationError("Rentable products need a rental_price_per_day")
    return product


def set_images(product: Product, cover_url=None, image_urls=None, replace=False):
    if cover_url:
        product.image_cover = cover_url
    if image_urls:
        if replace:
            product.images.clear()
        for url in image_urls:
            product.images.append(ProductImage(image_url=url))


def delete_product(product: Product):
    """Remove the product and anything that still points at it."""
    pid = product.id
    touched = {item.cart_id for item in CartItem.query.filter_by(product_id=product.id).all()}
    CartItem.query.filter_by(product_id=product.id).delete(synchronize_session=False)
    db.session.execute(wishlist_items.delete().where(wishlist_items.c.product_id == product.id))
    db.session.delete(product)
    db.session.flush()
    carts = Cart.query.filter(Cart.id.in_(touched)).all() if touched else []
    for cart in carts:
        db.session.refresh(cart)
        cart_service.clear_discount(cart)
        cart_service.recalc_cart(cart)
    db.session.commit()
    current_app.logger.info("Product %s deleted (%d carts updated)", pid, len(touched))


# ---------------- spreadsheet export / import ----------------

def products_frame() -> pd.DataFrame:
    rows = []
    for p in Product.query.order_by(Product.id.asc()).all():
        row = {}
        for header, attr in EXPORT_COLUMNS.items():
            value = getattr(p, attr)
            row[header] = float(value) if isinstance(value, Decimal) else value
        rows.append(row)
    return pd.DataFrame(rows, columns=list(EXPORT_COLUMNS))


def export_workbook(target=None):
    """Write all products to `target` (path or buffer). Returns the target."""
    output = target if target is not None else BytesIO()
    products_frame().to_excel(output, index=False)
    if isinstance(output, BytesIO):
        output.seek(0)
    return output


def _cell(row, header):
    value = row.get(header)
    if value is None:
        return None
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        pass
    if hasattr(value, "item"):
        # numpy scalar -> python
        value = value.item()
    return value


def import_frame(df: pd.DataFrame) -> int:
    """
    Create products from a DataFrame with the export column layout.
    All rows go in one transaction; a bad row rejects the whole file.
    """
    df.columns = df.columns.str.strip()
    missing = [c for c in REQUIRED_IMPORT_COLUMNS if c not in df.columns]
    if missing:
        raise ValidationError("Missing required columns in the uploaded file", data={"missing": missing})

    created = 0
    try:
        for index, raw in enumerate(df.to_dict(orient="records"), start=2):
            data = {attr: _cell(raw, header) for header, attr in EXPORT_COLUMNS.items()
                    if header in raw and attr not in ("id", "slug", "sold")}
            data = {k: v for k, v in data.items() if v is not None or k in ("title", "description")}
            try:
                product = apply_product_fields(Product(), data)
            except ValidationError as e:
                raise ValidationError(f"Row {index}: {e.message}")
            db.session.add(product)
            created += 1
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    current_app.logger.info("Imported %d products", created)
    return created


def import_workbook(source) -> int:
    try:
        df = pd.read_excel(source)
    except ValueError as e:
        raise ValidationError(f"Could not read spreadsheet: {e}")
    return import_frame(df)
