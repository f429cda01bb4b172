# storefront/user/routes.py
from flask import request
from flask_jwt_extended import current_user, set_access_cookies

from . import bp
from ..extensions import db
from ..errors import ValidationError, BusinessRuleError, NotFoundError, AuthenticationError
from ..model import User, Cart, RefreshToken
from ..services import auth_service
from ..services.uploads import save_image
from ..utils.api import ok, request_payload
from ..utils.decorators import login_required, admin_required, ROLES
from ..utils.parsing import parse_bool, pick
from ..utils.query import QueryBuilder

SELF_EDITABLE = ("name", "email", "phone")
ADMIN_EDITABLE = ("name", "email", "phone", "role", "is_blocked")
SECRET_COLUMNS = ("password_hash", "password_reset_code", "password_reset_expires")


def _get_user_or_404(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")
    return user


def _normalize_email(raw, exclude_id=None) -> str:
    email = (raw or "").strip().lower()
    if not email or "@" not in email:
        raise ValidationError("Valid email required")
    q = User.query.filter(User.email == email)
    if exclude_id is not None:
        q = q.filter(User.id != exclude_id)
    if q.first():
        raise BusinessRuleError("Email is already in use")
    return email


def _admin_count() -> int:
    return db.session.query(User).filter_by(role="admin").count()


def _apply_profile_fields(user: User, data: dict, allowed):
    if "password" in data:
        raise ValidationError("This route is not for password updates")
    fields = pick(data, *allowed)
    if "email" in fields:
        email = _normalize_email(fields.pop("email"), exclude_id=user.id)
        if email != user.email:
            user.email = email
            user.is_verified = False
    if "role" in fields:
        _change_role(user, fields.pop("role"))
    if "is_blocked" in fields:
        user.is_blocked = parse_bool(fields.pop("is_blocked"))
    for field, value in fields.items():
        if isinstance(value, str):
            value = value.strip() or None
        setattr(user, field, value)


def _change_role(target: User, raw_role):
    new_role = (raw_role or "").strip().lower()
    if new_role not in ROLES:
        raise ValidationError("Invalid role")
    # Prevent demoting the LAST admin
    if target.role == "admin" and new_role != "admin" and _admin_count() <= 1:
        raise BusinessRuleError("Cannot demote the last admin")
    target.role = new_role


def _validated_new_password(raw) -> str:
    password = raw or ""
    if len(password) < auth_service.MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password required, min {auth_service.MIN_PASSWORD_LENGTH} chars")
    return password


# ---- self service ----------------------------------------------------------

@bp.get("/me")
@login_required
def get_me():
    return ok("OK", {"user": current_user.as_dict()})


@bp.patch("/me")
@login_required
def update_me():
    data = request.get_json(silent=True) or {}
    _apply_profile_fields(current_user, data, SELF_EDITABLE)
    db.session.commit()
    return ok("Profile updated", {"user": current_user.as_dict()})


@bp.patch("/me/image")
@login_required
def upload_my_image():
    url = save_image(request.files.get("profile_image"), folder="users", name_hint=current_user.name)
    if not url:
        raise ValidationError("profile_image file is required")
    current_user.profile_image = url
    db.session.commit()
    return ok("Profile image updated", {"user": current_user.as_dict()})


@bp.patch("/me/password")
@login_required
def change_my_password():
    data = request.get_json(silent=True) or {}
    if not auth_service.verify_password(current_user, data.get("current_password") or ""):
        raise AuthenticationError("Your current password is incorrect")
    auth_service.set_password(current_user, _validated_new_password(data.get("new_password")))
    access_token, refresh_token = auth_service.issue_tokens(current_user)
    db.session.commit()

    resp = ok("Password updated successfully", {
        "user": current_user.as_dict(),
        "token": access_token,
        "refresh_token": refresh_token,
    })
    set_access_cookies(resp, access_token)
    return resp


# ---- admin -----------------------------------------------------------------

@bp.get("")
@admin_required
def list_users():
    qb = QueryBuilder(User, request.args, search_fields=("name", "email"), default_limit=20, hidden=SECRET_COLUMNS)
    return ok("users", qb.run(serialize=lambda u: u.as_dict()))


@bp.post("")
@admin_required
def create_user():
    data = request_payload()
    name = (data.get("name") or "").strip()
    if not name:
        raise ValidationError("Name required")
    role = (data.get("role") or "user").strip().lower()
    if role not in ROLES:
        raise ValidationError("Invalid role")
    user = User(
        name=name,
        email=_normalize_email(data.get("email")),
        phone=(data.get("phone") or "").strip() or None,
        role=role,
        password_hash=auth_service.hash_password(_validated_new_password(data.get("password"))),
        is_verified=True,
    )
    db.session.add(user)
    db.session.commit()
    return ok("User created", {"user": user.as_dict()}, status=201)


@bp.get("/<int:user_id>")
@admin_required
def get_user(user_id: int):
    return ok("OK", {"user": _get_user_or_404(user_id).as_dict()})


@bp.put("/<int:user_id>")
@admin_required
def update_user(user_id: int):
    user = _get_user_or_404(user_id)
    data = request.get_json(silent=True) or {}
    _apply_profile_fields(user, data, ADMIN_EDITABLE)
    db.session.commit()
    return ok("User updated", {"user": user.as_dict()})


@bp.patch("/<int:user_id>/role")
@admin_required
def update_user_role(user_id: int):
    target = _get_user_or_404(user_id)
    body = request.get_json(silent=True) or {}
    _change_role(target, body.get("role"))
    db.session.commit()
    return ok("Role updated", {"user": target.as_dict()})


@bp.patch("/<int:user_id>/password")
@admin_required
def change_user_password(user_id: int):
    target = _get_user_or_404(user_id)
    body = request.get_json(silent=True) or {}
    auth_service.set_password(target, _validated_new_password(body.get("password")))
    db.session.commit()
    return ok("Password updated", {"user": target.as_dict()})


@bp.delete("/<int:user_id>")
@admin_required
def delete_user(user_id: int):
    target = _get_user_or_404(user_id)
    # Admin cannot remove the last admin
    if target.role == "admin" and _admin_count() <= 1:
        raise BusinessRuleError("Cannot delete the last admin")

    cart = Cart.query.filter_by(user_id=target.id).first()
    if cart:
        db.session.delete(cart)
    RefreshToken.query.filter_by(user_id=target.id).delete(synchronize_session=False)
    db.session.delete(target)
    db.session.commit()
    return ok("User deleted", {"id": user_id})
