# storefront/address/routes.py
from flask import request
from flask_jwt_extended import current_user

from . import bp
from ..extensions import db
from ..errors import ValidationError, NotFoundError
from ..model import Address
from ..utils.api import ok
from ..utils.decorators import login_required

FIELDS = ("alias", "city", "street", "phone")


def _clean(data: dict, partial=False) -> dict:
    values = {}
    for k in FIELDS:
        if k in data:
            values[k] = (str(data.get(k) or "")).strip() or None
    if not partial:
        missing = [k for k in ("city", "street") if not values.get(k)]
        if missing:
            raise ValidationError(f"Missing fields: {', '.join(missing)}")
    else:
        for k in ("city", "street"):
            if k in values and not values[k]:
                raise ValidationError(f"{k} cannot be empty")
    return values


def _own_address_or_404(address_id: int) -> Address:
    address = Address.query.filter_by(id=address_id, user_id=current_user.id).first()
    if not address:
        raise NotFoundError("Address not found")
    return address


def _listing():
    return {"addresses": [a.as_dict() for a in current_user.addresses]}


@bp.get("")
@login_required
def list_addresses():
    return ok("OK", _listing())


@bp.post("")
@login_required
def add_address():
    data = request.get_json(silent=True) or {}
    address = Address(user_id=current_user.id, **_clean(data))
    db.session.add(address)
    db.session.commit()
    db.session.refresh(current_user)
    return ok("Address added successfully", _listing(), status=201)


@bp.put("/<int:address_id>")
@login_required
def update_address(address_id: int):
    address = _own_address_or_404(address_id)
    for k, v in _clean(request.get_json(silent=True) or {}, partial=True).items():
        setattr(address, k, v)
    db.session.commit()
    return ok("Address updated", {"address": address.as_dict()})


@bp.delete("/<int:address_id>")
@login_required
def remove_address(address_id: int):
    address = _own_address_or_404(address_id)
    db.session.delete(address)
    db.session.commit()
    db.session.refresh(current_user)
    return ok("Address removed successfully", _listing())
