# --- storefront/subcategory/routes.py ---
from flask import request
from flask_jwt_extended import current_user

from . import bp
from ..extensions import db
from ..errors import ValidationError, BusinessRuleError, NotFoundError
from ..model import Category, SubCategory, Product
from ..utils.api import ok
from ..utils.decorators import admin_required
from ..utils.parsing import slugify, parse_opt_int
from ..utils.query import QueryBuilder


def _get_or_404(sid: int) -> SubCategory:
    s = db.session.get(SubCategory, sid)
    if not s:
        raise NotFoundError(f"No subcategory for this id {sid}")
    return s


def _check_name(name, exclude_id=None) -> str:
    name = (name or "").strip()
    if len(name) < 2 or len(name) > 32:
        raise ValidationError("Subcategory name must be between 2 and 32 characters")
    q = SubCategory.query.filter(SubCategory.name.ilike(name))
    if exclude_id is not None:
        q = q.filter(SubCategory.id != exclude_id)
    if q.first():
        raise BusinessRuleError("Subcategory name already exists")
    return name


def _check_category(raw) -> int:
    cid = parse_opt_int(raw)
    if cid is None or not db.session.get(Category, cid):
        raise ValidationError("Subcategory must belong to an existing category")
    return cid


@bp.get("")
def list_subcategories():
    qb = QueryBuilder(SubCategory, request.args, search_fields=("name",), default_limit=50)
    return ok("subcategories", qb.run())


@bp.post("")
@admin_required
def create_subcategory():
    data = request.get_json(silent=True) or {}
    name = _check_name(data.get("name"))
    s = SubCategory(
        name=name,
        slug=slugify(name),
        category_id=_check_category(data.get("category_id")),
        created_by_id=current_user.id,
    )
    db.session.add(s)
    db.session.commit()
    return ok("Subcategory created", {"subcategory": s.as_api()}, status=201)


@bp.get("/<int:sid>")
def get_subcategory(sid: int):
    return ok("OK", {"subcategory": _get_or_404(sid).as_api()})


@bp.put("/<int:sid>")
@admin_required
def update_subcategory(sid: int):
    s = _get_or_404(sid)
    data = request.get_json(silent=True) or {}
    if "name" in data:
        s.name = _check_name(data.get("name"), exclude_id=s.id)
        s.slug = slugify(s.name)
    if "category_id" in data:
        s.category_id = _check_category(data.get("category_id"))
    db.session.commit()
    return ok("Subcategory updated", {"subcategory": s.as_api()})


@bp.delete("/<int:sid>")
@admin_required
def delete_subcategory(sid: int):
    s = _get_or_404(sid)
    # products keep existing without a subcategory
    Product.query.filter_by(subcategory_id=sid).update({"subcategory_id": None}, synchronize_session=False)
    db.session.delete(s)
    db.session.commit()
    return ok("Subcategory deleted", {"id": sid})
