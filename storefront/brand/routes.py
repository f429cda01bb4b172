from flask import request

from . import bp
from ..extensions import db
from ..errors import ValidationError, BusinessRuleError, NotFoundError
from ..model import Brand, Product
from ..services.uploads import save_image
from ..utils.api import ok, request_payload
from ..utils.decorators import admin_required
from ..utils.parsing import slugify
from ..utils.query import QueryBuilder


def _get_or_404(bid: int) -> Brand:
    b = db.session.get(Brand, bid)
    if not b:
        raise NotFoundError(f"No brand for this id {bid}")
    return b


def _check_name(name, exclude_id=None) -> str:
    name = (name or "").strip()
    if len(name) < 2 or len(name) > 32:
        raise ValidationError("Brand name must be between 2 and 32 characters")
    q = Brand.query.filter(Brand.name.ilike(name))
    if exclude_id is not None:
        q = q.filter(Brand.id != exclude_id)
    if q.first():
        raise BusinessRuleError("Brand name already exists")
    return name


@bp.get("")
def list_brands():
    qb = QueryBuilder(Brand, request.args, search_fields=("name",), default_limit=50)
    return ok("brands", qb.run())


@bp.post("")
@admin_required
def create_brand():
    data = request_payload()
    name = _check_name(data.get("name"))
    b = Brand(
        name=name,
        slug=slugify(name),
        logo=save_image(request.files.get("logo"), folder="brands", name_hint=name),
    )
    db.session.add(b)
    db.session.commit()
    return ok("Brand created", {"brand": b.as_api()}, status=201)


@bp.get("/<int:bid>")
def get_brand(bid: int):
    return ok("OK", {"brand": _get_or_404(bid).as_api()})


@bp.put("/<int:bid>")
@admin_required
def update_brand(bid: int):
    b = _get_or_404(bid)
    data = request_payload()
    if "name" in data:
        b.name = _check_name(data.get("name"), exclude_id=b.id)
        b.slug = slugify(b.name)
    logo = save_image(request.files.get("logo"), folder="brands", name_hint=b.name)
    if logo:
        b.logo = logo
    db.session.commit()
    return ok("Brand updated", {"brand": b.as_api()})


@bp.delete("/<int:bid>")
@admin_required
def delete_brand(bid: int):
    b = _get_or_404(bid)
    Product.query.filter_by(brand_id=bid).update({"brand_id": None}, synchronize_session=False)
    db.session.delete(b)
    db.session.commit()
    return ok("Brand deleted", {"id": bid})
