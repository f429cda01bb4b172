from flask import current_app, request, jsonify
from flask_jwt_extended import set_access_cookies, unset_jwt_cookies, current_user

from . import bp
from ..extensions import db
from ..errors import (
    ValidationError, BusinessRuleError, AuthenticationError, AuthorizationError, NotFoundError, UpstreamError,
)
from ..model import User, RefreshToken
from ..services import auth_service
from ..utils.api import api_ok, ok
from ..utils.dates import utcnow
from ..utils.decorators import login_required


def _auth_response(message, user, access_token, refresh_token, status):
    resp = jsonify(api_ok(message, data={
        "user": user.as_dict(),
        "token": access_token,
        "refresh_token": refresh_token,
    }))
    resp.status_code = status
    set_access_cookies(resp, access_token)
    return resp


@bp.post("/signup")
def signup():
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""
    name = (data.get("name") or "").strip()

    if not name:
        raise ValidationError("Name required")
    if not email or "@" not in email:
        raise ValidationError("Valid email required")
    if len(password) < auth_service.MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password required, min {auth_service.MIN_PASSWORD_LENGTH} chars")
    if User.query.filter_by(email=email).first():
        raise BusinessRuleError("Email is already in use")

    # Bootstrap: very first account becomes admin
    is_first_user = db.session.query(User.id).count() == 0
    user = User(
        email=email,
        name=name,
        phone=(data.get("phone") or "").strip() or None,
        password_hash=auth_service.hash_password(password),
        role="admin" if is_first_user else "user",
    )
    db.session.add(user)
    db.session.flush()
    access_token, refresh_token = auth_service.issue_tokens(user)
    db.session.commit()

    try:
        auth_service.send_verification_email(user)
    except UpstreamError:
        current_app.logger.warning("Account %s created without a verification email", user.id)

    return _auth_response("Account created successfully", user, access_token, refresh_token, 201)


@bp.post("/login")
def login():
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""
    if not email or not password:
        raise ValidationError("Email and password are required")

    user = User.query.filter_by(email=email).first()
    if not user or not auth_service.verify_password(user, password):
        raise AuthenticationError("Incorrect email or password")
    if user.is_blocked:
        raise AuthorizationError("Your account has been blocked")
    if current_app.config.get("REQUIRE_EMAIL_VERIFICATION") and not user.is_verified:
        raise AuthorizationError(f"Your email is not verified. Please use the link we sent to {user.email}")

    access_token, refresh_token = auth_service.issue_tokens(user)
    db.session.commit()
    return _auth_response("You've logged in successfully", user, access_token, refresh_token, 200)


@bp.post("/refresh")
def refresh():
    data = request.get_json(silent=True) or {}
    token_str = data.get("refresh_token")
    if not token_str:
        raise ValidationError("refresh_token is required")

    refresh_row = RefreshToken.query.filter_by(token=token_str).first()
    if not refresh_row or refresh_row.expires_at < utcnow():
        raise AuthenticationError("Invalid or expired refresh token")

    user = db.session.get(User, refresh_row.user_id)
    if not user or user.is_blocked:
        raise AuthenticationError("Invalid or expired refresh token")

    # ROTATE: the presented refresh token is single-use
    db.session.delete(refresh_row)
    db.session.flush()

    access_token, new_refresh = auth_service.issue_tokens(user)
    db.session.commit()
    return _auth_response("Token refreshed", user, access_token, new_refresh, 200)


@bp.post("/logout")
@login_required
def logout():
    auth_service.revoke_refresh_tokens(current_user)
    db.session.commit()
    resp = jsonify(api_ok("Logged out successfully"))
    unset_jwt_cookies(resp)
    return resp


@bp.get("/me")
@login_required
def me():
    return jsonify(api_ok("OK", data={"user": current_user.as_dict()}))


def _user_by_email(data):
    email = (data.get("email") or "").strip().lower()
    if not email:
        raise ValidationError("Email is required")
    user = User.query.filter_by(email=email).first()
    if not user:
        raise NotFoundError(f"There is no user with email {email}")
    return user


# ---- email verification ----------------------------------------------------

@bp.get("/verify/<token>")
def confirm_email(token: str):
    user = auth_service.confirm_email_token(token)
    return ok("Email verified successfully", {"user": user.as_dict()})


@bp.post("/resend-email")
def resend_email():
    user = _user_by_email(request.get_json(silent=True) or {})
    if user.is_verified:
        raise BusinessRuleError("Email is already verified")
    auth_service.send_verification_email(user)
    return ok("Email sent successfully")


# ---- password reset --------------------------------------------------------

@bp.post("/forgot-password")
def forgot_password():
    user = _user_by_email(request.get_json(silent=True) or {})
    auth_service.start_password_reset(user)
    return ok("Reset code sent successfully")


@bp.post("/verify-reset-code")
def verify_reset_code():
    data = request.get_json(silent=True) or {}
    user = _user_by_email(data)
    if not data.get("reset_code"):
        raise ValidationError("reset_code is required")
    auth_service.verify_reset_code(user, data.get("reset_code"))
    return ok("Reset code verified successfully")


@bp.post("/reset-password")
def reset_password():
    data = request.get_json(silent=True) or {}
    user = _user_by_email(data)
    new_password = data.get("new_password") or ""
    if len(new_password) < auth_service.MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password required, min {auth_service.MIN_PASSWORD_LENGTH} chars")

    auth_service.reset_password(user, new_password)
    access_token, refresh_token = auth_service.issue_tokens(user)
    db.session.commit()
    current_app.logger.info("Password reset for user %s", user.id)
    return _auth_response("Password reset successfully", user, access_token, refresh_token, 200)
