# storefront/rental/routes.py
from flask import request
from flask_jwt_extended import current_user

from . import bp
from ..extensions import db
from ..errors import ValidationError, NotFoundError, AuthorizationError
from ..model import RentalRequest, RENTAL_STATUSES
from ..services import rental_service
from ..services.uploads import save_image
from ..utils.api import ok, request_payload
from ..utils.decorators import login_required, admin_required, owner_or_admin
from ..utils.parsing import parse_int


def _get_request_or_404(request_id: int) -> RentalRequest:
    rr = db.session.get(RentalRequest, request_id)
    if not rr:
        raise NotFoundError("Rental request not found")
    return rr


def _page(query):
    page = max(parse_int(request.args.get("page"), 1), 1)
    limit = min(max(parse_int(request.args.get("limit"), 20), 1), 100)
    pagination = query.order_by(RentalRequest.created_at.desc(), RentalRequest.id.desc()).paginate(
        page=page, per_page=limit, error_out=False
    )
    return {
        "items": [rr.as_api() for rr in pagination.items],
        "meta": {
            "page": pagination.page,
            "pages": pagination.pages or 1,
            "limit": limit,
            "results": len(pagination.items),
            "total": pagination.total,
        },
    }


@bp.post("")
@login_required
def create_rental_request():
    data = request_payload()
    front = request.files.get("id_card_front")
    back = request.files.get("id_card_back")
    if not front or not front.filename or not back or not back.filename:
        raise ValidationError("Both sides of ID card images are required")
    rr = rental_service.create_request(
        current_user,
        data,
        id_card_front=save_image(front, folder="id-cards", name_hint=f"user-{current_user.id}-front"),
        id_card_back=save_image(back, folder="id-cards", name_hint=f"user-{current_user.id}-back"),
    )
    return ok("Rental request submitted successfully", {"rental_request": rr.as_api()}, status=201)


@bp.get("/my-requests")
@login_required
def my_rental_requests():
    return ok("rental requests", _page(RentalRequest.query.filter_by(user_id=current_user.id)))


@bp.get("")
@admin_required
def list_rental_requests():
    q = RentalRequest.query
    status = (request.args.get("status") or "").strip()
    if status:
        if status not in RENTAL_STATUSES:
            raise ValidationError("Invalid status")
        q = q.filter(RentalRequest.status == status)
    return ok("rental requests", _page(q))


@bp.get("/stats")
@admin_required
def rental_stats():
    return ok("rental stats", rental_service.stats())


@bp.get("/<int:request_id>")
@login_required
def get_rental_request(request_id: int):
    rr = _get_request_or_404(request_id)
    if not owner_or_admin(current_user, rr.user_id):
        raise AuthorizationError("Not authorized to view this rental request")
    return ok("OK", {"rental_request": rr.as_api()})


@bp.patch("/<int:request_id>/status")
@admin_required
def update_rental_status(request_id: int):
    rr = _get_request_or_404(request_id)
    body = request.get_json(silent=True) or {}
    rr = rental_service.update_status(rr, (body.get("status") or "").strip(), current_user, body.get("admin_notes"))
    return ok(f"Rental request {rr.status}", {"rental_request": rr.as_api()})


@bp.patch("/<int:request_id>/return")
@admin_required
def update_rental_return(request_id: int):
    rr = _get_request_or_404(request_id)
    body = request.get_json(silent=True) or {}
    rr = rental_service.record_return(
        rr,
        (body.get("return_condition") or "").strip(),
        body.get("deposit_returned_amount"),
        body.get("admin_notes"),
    )
    return ok("Return information updated", {"rental_request": rr.as_api()})


@bp.patch("/<int:request_id>/cancel")
@login_required
def cancel_rental_request(request_id: int):
    rr = _get_request_or_404(request_id)
    if rr.user_id != current_user.id:
        raise AuthorizationError("Not authorized to cancel this rental request")
    rr = rental_service.cancel_by_owner(rr)
    return ok("Rental request cancelled", {"rental_request": rr.as_api()})
