# --- storefront/category/routes.py ---
from flask import request

from . import bp
from ..extensions import db
from ..errors import ValidationError, BusinessRuleError, NotFoundError
from ..model import Category, SubCategory, Product
from ..services.uploads import save_image
from ..utils.api import ok, request_payload
from ..utils.decorators import admin_required
from ..utils.parsing import slugify
from ..utils.query import QueryBuilder


def _get_category_or_404(cid: int) -> Category:
    c = db.session.get(Category, cid)
    if not c:
        raise NotFoundError(f"No category for this id {cid}")
    return c


def _unique_name(name: str, exclude_id=None) -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Category name required")
    if len(name) < 3 or len(name) > 32:
        raise ValidationError("Category name must be between 3 and 32 characters")
    q = Category.query.filter(Category.name.ilike(name))
    if exclude_id is not None:
        q = q.filter(Category.id != exclude_id)
    if q.first():
        raise BusinessRuleError("Category name already exists")
    return name


# ------------------------ CATEGORY ROUTES ------------------------

@bp.get("")
def list_categories():
    """
    keyword -> substring match on name
    sort    -> any column, '-' for descending (default newest first)
    page / limit
    """
    qb = QueryBuilder(Category, request.args, search_fields=("name",), default_limit=50)
    return ok("categories", qb.run())


@bp.post("")
@admin_required
def create_category():
    data = request_payload()
    name = _unique_name(data.get("name"))
    c = Category(
        name=name,
        slug=slugify(name),
        description=(data.get("description") or "").strip() or None,
        image_cover=save_image(request.files.get("image_cover"), folder="categories", name_hint=name),
    )
    db.session.add(c)
    db.session.commit()
    return ok("Category created", {"category": c.as_api()}, status=201)


@bp.get("/<int:cid>")
def get_category(cid: int):
    return ok("OK", {"category": _get_category_or_404(cid).as_api()})


@bp.put("/<int:cid>")
@admin_required
def update_category(cid: int):
    c = _get_category_or_404(cid)
    data = request_payload()
    if "name" in data:
        c.name = _unique_name(data.get("name"), exclude_id=c.id)
        c.slug = slugify(c.name)
    if "description" in data:
        c.description = (data.get("description") or "").strip() or None
    image = save_image(request.files.get("image_cover"), folder="categories", name_hint=c.name)
    if image:
        c.image_cover = image
    db.session.commit()
    return ok("Category updated", {"category": c.as_api()})


@bp.delete("/<int:cid>")
@admin_required
def delete_category(cid: int):
    c = _get_category_or_404(cid)
    if Product.query.filter_by(category_id=cid).first():
        raise BusinessRuleError("Cannot delete: category has products")
    db.session.delete(c)
    db.session.commit()
    return ok("Category deleted", {"id": cid})


# ------------------------ NESTED SUBCATEGORIES ------------------------

@bp.get("/<int:cid>/subcategories")
def list_category_subcategories(cid: int):
    _get_category_or_404(cid)
    qb = QueryBuilder(SubCategory, request.args, search_fields=("name",), default_limit=50)
    qb.where(SubCategory.category_id == cid)
    return ok("subcategories", qb.run(exclude=("category_id",)))
