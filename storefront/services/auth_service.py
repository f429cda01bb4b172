# storefront/services/auth_service.py
import secrets
import time
import uuid
from datetime import timedelta

from flask import current_app, url_for
from flask_jwt_extended import create_access_token
from itsdangerous import BadData, URLSafeTimedSerializer
from werkzeug.security import generate_password_hash, check_password_hash

from ..extensions import db, jwt
from ..errors import error_response, BusinessRuleError, NotFoundError, UpstreamError
from ..model import User, RefreshToken
from ..utils.dates import utcnow, as_timestamp
from . import mailer

MIN_PASSWORD_LENGTH = 6
RESET_CODE_DIGITS = 6
MAX_RESET_ATTEMPTS = 5


def hash_password(raw: str) -> str:
    return generate_password_hash(raw)


def verify_password(user: User, raw: str) -> bool:
    return bool(user and user.password_hash) and check_password_hash(user.password_hash, raw)


def issue_access_token(user: User) -> str:
    # auth_time keeps sub-second precision; the standard iat claim is whole seconds
    return create_access_token(
        identity=str(user.id),
        additional_claims={"role": user.role, "auth_time": time.time()},
    )


def issue_refresh_token(user: User) -> str:
    ttl_days = current_app.config.get("REFRESH_TOKEN_TTL_DAYS", 7)
    token_str = uuid.uuid4().hex
    db.session.add(RefreshToken(
        user_id=user.id,
        token=token_str,
        expires_at=utcnow() + timedelta(days=ttl_days),
    ))
    return token_str


def issue_tokens(user: User) -> tuple[str, str]:
    """Create an access token and persist a new refresh token (caller commits)."""
    return issue_access_token(user), issue_refresh_token(user)


def revoke_refresh_tokens(user: User):
    RefreshToken.query.filter_by(user_id=user.id).delete(synchronize_session=False)


def set_password(user: User, raw: str):
    """Store a new hash and invalidate every token issued before now."""
    user.password_hash = hash_password(raw)
    user.password_changed_at = utcnow()
    revoke_refresh_tokens(user)


def token_predates_password_change(user: User, jwt_payload: dict) -> bool:
    if not user or not user.password_changed_at:
        return False
    issued = jwt_payload.get("auth_time", jwt_payload.get("iat", 0))
    return float(issued) < as_timestamp(user.password_changed_at)


# ---- email verification ----------------------------------------------------

def _verification_serializer():
    return URLSafeTimedSerializer(current_app.config["SECRET_KEY"], salt="email-verify")


def email_verification_token(user: User) -> str:
    return _verification_serializer().dumps({"user_id": user.id, "email": user.email})


def send_verification_email(user: User):
    link = url_for("auth.confirm_email", token=email_verification_token(user), _external=True)
    mailer.send_email(user.email, "Verify your email", mailer.verification_email(link))


def confirm_email_token(token: str) -> User:
    """Mark the token's user verified. A link stops working once the email changes."""
    max_age = current_app.config.get("EMAIL_VERIFICATION_TTL_HOURS", 24) * 3600
    try:
        data = _verification_serializer().loads(token, max_age=max_age)
    except BadData:
        raise NotFoundError("Email verification failed")
    user = _load_user(data.get("user_id"))
    if not user or user.email != data.get("email"):
        raise NotFoundError("Email verification failed")
    user.is_verified = True
    db.session.commit()
    return user


# ---- password reset --------------------------------------------------------

def clear_password_reset(user: User):
    user.password_reset_code = None
    user.password_reset_expires = None
    user.password_reset_verified = False
    user.password_reset_attempts = 0


def _reset_code_live(user: User) -> bool:
    return bool(user.password_reset_code) and user.password_reset_expires is not None \
        and user.password_reset_expires > utcnow()


def start_password_reset(user: User):
    """Store a hashed one-time code and mail the plain one to the user."""
    ttl = current_app.config.get("PASSWORD_RESET_TTL_MINUTES", 10)
    code = f"{secrets.randbelow(10 ** RESET_CODE_DIGITS):0{RESET_CODE_DIGITS}d}"
    user.password_reset_code = generate_password_hash(code)
    user.password_reset_expires = utcnow() + timedelta(minutes=ttl)
    user.password_reset_verified = False
    user.password_reset_attempts = 0
    db.session.commit()
    try:
        mailer.send_email(user.email, f"Your password reset code (valid for {ttl} minutes)",
                          mailer.reset_code_email(code, ttl))
    except UpstreamError:
        clear_password_reset(user)
        db.session.commit()
        raise


def verify_reset_code(user: User, code: str):
    if not _reset_code_live(user):
        raise BusinessRuleError("Reset code is invalid or has expired")
    if not check_password_hash(user.password_reset_code, str(code or "").strip()):
        user.password_reset_attempts += 1
        if user.password_reset_attempts >= MAX_RESET_ATTEMPTS:
            current_app.logger.warning("Too many wrong reset codes for user %s", user.id)
            clear_password_reset(user)
        db.session.commit()
        raise BusinessRuleError("Invalid reset code")
    user.password_reset_verified = True
    db.session.commit()


def reset_password(user: User, new_password: str):
    """Caller issues fresh tokens and commits."""
    if not user.password_reset_verified:
        raise BusinessRuleError("Reset code has not been verified")
    if not _reset_code_live(user):
        raise BusinessRuleError("Reset code is invalid or has expired")
    set_password(user, new_password)
    clear_password_reset(user)


# ---- flask-jwt-extended callbacks -----------------------------------------

def _load_user(identity):
    try:
        uid = int(identity)
    except (TypeError, ValueError):
        return None
    return db.session.get(User, uid)


@jwt.user_lookup_loader
def user_lookup_callback(_jwt_header, jwt_data):
    return _load_user(jwt_data["sub"])


@jwt.token_in_blocklist_loader
def password_changed_callback(_jwt_header, jwt_payload):
    user = _load_user(jwt_payload.get("sub"))
    return token_predates_password_change(user, jwt_payload)


@jwt.revoked_token_loader
def revoked_token_callback(_jwt_header, _jwt_payload):
    return error_response("User recently changed password. Please login again.", 401)


@jwt.user_lookup_error_loader
def user_lookup_error_callback(_jwt_header, _jwt_payload):
    return error_response("The user belonging to this token no longer exists", 401)


@jwt.unauthorized_loader
def missing_token_callback(reason):
    return error_response("You are not logged in. Please log in to access this route", 401)


@jwt.invalid_token_loader
def invalid_token_callback(reason):
    return error_response(f"Invalid token: {reason}", 401)


@jwt.expired_token_loader
def expired_token_callback(_jwt_header, _jwt_payload):
    return error_response("Token has expired. Please login again.", 401)
