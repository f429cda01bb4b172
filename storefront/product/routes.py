# storefront/product/routes.py
from flask import request, send_file

from . import bp
from ..extensions import db
from ..errors import ValidationError
from ..model import Product
from ..services import product_service
from ..services.uploads import save_image, save_images
from ..utils.api import ok, request_payload
from ..utils.decorators import admin_required
from ..utils.parsing import parse_opt_float
from ..utils.query import QueryBuilder


def _price_range(raw):
    """'min,max' with either side optional."""
    parts = [p.strip() for p in str(raw).split(",")]
    if len(parts) > 2:
        raise ValidationError("price must be 'min,max'")
    bounds = []
    for part in parts + [""] * (2 - len(parts)):
        value = parse_opt_float(part)
        if part and value is None:
            raise ValidationError("price bounds must be numbers")
        bounds.append(value)
    lo, hi = bounds
    if lo is not None and hi is not None and lo > hi:
        raise ValidationError("price min must not exceed max")
    return lo, hi


@bp.get("")
def list_products():
    """
    Generic filters (see QueryBuilder) plus:
      price=min,max   -> inclusive price range
      rating=min      -> ratings_average >= min
      keyword=...     -> title / description
    """
    qb = QueryBuilder(Product, request.args, search_fields=("title", "description"))

    price = (request.args.get("price") or "").strip()
    if price:
        lo, hi = _price_range(price)
        if lo is not None:
            qb.where(Product.price >= lo)
        if hi is not None:
            qb.where(Product.price <= hi)

    rating = (request.args.get("rating") or "").strip()
    if rating:
        min_rating = parse_opt_float(rating)
        if min_rating is None:
            raise ValidationError("rating must be a number")
        qb.where(Product.ratings_average >= min_rating)

    return ok("products", qb.run(exclude=("price", "rating")))


@bp.get("/<int:pid>")
def get_product(pid: int):
    return ok("OK", {"product": product_service.get_product_or_404(pid).as_api()})


@bp.post("")
@admin_required
def create_product():
    data = request_payload()
    product = product_service.apply_product_fields(Product(), data)
    product_service.set_images(
        product,
        cover_url=save_image(request.files.get("image_cover"), folder="products", name_hint=product.title),
        image_urls=save_images(request.files, "images", folder="products", name_hint=product.title),
    )
    db.session.add(product)
    db.session.commit()
    return ok("Product created", {"product": product.as_api()}, status=201)


@bp.put("/<int:pid>")
@admin_required
def update_product(pid: int):
    product = product_service.get_product_or_404(pid)
    data = request_payload()
    product_service.apply_product_fields(product, data, partial=True)
    # new gallery uploads replace the old gallery
    product_service.set_images(
        product,
        cover_url=save_image(request.files.get("image_cover"), folder="products", name_hint=product.title),
        image_urls=save_images(request.files, "images", folder="products", name_hint=product.title),
        replace=True,
    )
    db.session.commit()
    return ok("Product updated", {"product": product.as_api()})


@bp.delete("/<int:pid>")
@admin_required
def delete_product(pid: int):
    product_service.delete_product(product_service.get_product_or_404(pid))
    return ok("Product deleted", {"id": pid})


@bp.get("/export")
@admin_required
def export_products():
    """Export all products as an Excel file."""
    return send_file(
        product_service.export_workbook(),
        as_attachment=True,
        download_name="products_export.xlsx",
        mimetype=product_service.XLSX_MIMETYPE,
    )


@bp.post("/import")
@admin_required
def import_products():
    """Import products from an uploaded .xlsx file."""
    file = request.files.get("file")
    if file is None or not file.filename:
        raise ValidationError("No file uploaded")
    if not file.filename.lower().endswith(".xlsx"):
        raise ValidationError("Only .xlsx files are allowed")
    created = product_service.import_workbook(file.stream)
    return ok("Products imported successfully", {"created": created}, status=201)
