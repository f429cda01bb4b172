import re
from datetime import timedelta

from storefront.extensions import db, mail
from storefront.model import User, RefreshToken
from storefront.services import auth_service
from storefront.utils.dates import utcnow

from conftest import bearer, make_user, token_for


def _signup(client, email, password="secret123", name="Someone"):
    return client.post("/api/v1/auth/signup", json={"name": name, "email": email, "password": password})


def test_first_signup_becomes_admin(app):
    client = app.test_client()
    first = _signup(client, "first@example.com").get_json()["data"]
    second = _signup(app.test_client(), "second@example.com").get_json()["data"]
    assert first["user"]["role"] == "admin"
    assert second["user"]["role"] == "user"
    assert first["token"] and first["refresh_token"]


def test_signup_validation(client):
    assert _signup(client, "bad-email").status_code == 400
    assert _signup(client, "a@example.com", password="123").status_code == 400
    assert _signup(client, "a@example.com").status_code == 201
    resp = _signup(client, "A@example.com")
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "Email is already in use"


def test_login(app, client, user_id):
    resp = client.post("/api/v1/auth/login", json={"email": "alice@example.com", "password": "secret123"})
    assert resp.status_code == 200
    token = resp.get_json()["data"]["token"]

    me = client.get("/api/v1/auth/me", headers=bearer(token))
    assert me.get_json()["data"]["user"]["id"] == user_id

    resp = client.post("/api/v1/auth/login", json={"email": "alice@example.com", "password": "wrong-pass"})
    assert resp.status_code == 401
    assert resp.get_json()["message"] == "Incorrect email or password"


def test_blocked_user_cannot_login_or_use_token(app, client, user_id, user_headers):
    with app.app_context():
        db.session.get(User, user_id).is_blocked = True
        db.session.commit()
    resp = client.post("/api/v1/auth/login", json={"email": "alice@example.com", "password": "secret123"})
    assert resp.status_code == 403
    assert client.get("/api/v1/auth/me", headers=user_headers).status_code == 403


def test_invalid_token(client):
    resp = client.get("/api/v1/auth/me", headers=bearer("not-a-jwt"))
    assert resp.status_code == 401
    assert resp.get_json()["status"] is False


def test_password_change_invalidates_older_tokens(app, user_id):
    client = app.test_client()
    old_token = token_for(app, user_id)

    resp = client.patch(
        "/api/v1/users/me/password",
        json={"current_password": "secret123", "new_password": "newsecret1"},
        headers=bearer(old_token),
    )
    assert resp.status_code == 200
    new_token = resp.get_json()["data"]["token"]

    client = app.test_client()
    stale = client.get("/api/v1/auth/me", headers=bearer(old_token))
    assert stale.status_code == 401
    assert stale.get_json()["message"] == "User recently changed password. Please login again."
    assert client.get("/api/v1/auth/me", headers=bearer(new_token)).status_code == 200


def test_change_password_needs_current_password(client, user_headers):
    resp = client.patch(
        "/api/v1/users/me/password",
        json={"current_password": "nope", "new_password": "newsecret1"},
        headers=user_headers,
    )
    assert resp.status_code == 401


def test_refresh_token_rotates(app, client, user_id):
    login = client.post("/api/v1/auth/login", json={"email": "alice@example.com", "password": "secret123"})
    refresh_token = login.get_json()["data"]["refresh_token"]

    resp = client.post("/api/v1/auth/refresh", json={"refresh_token": refresh_token})
    assert resp.status_code == 200
    rotated = resp.get_json()["data"]["refresh_token"]
    assert rotated != refresh_token

    # the old one is single-use
    assert client.post("/api/v1/auth/refresh", json={"refresh_token": refresh_token}).status_code == 401
    assert client.post("/api/v1/auth/refresh", json={"refresh_token": rotated}).status_code == 200


def test_logout_revokes_refresh_tokens(app, client, user_id):
    login = client.post("/api/v1/auth/login", json={"email": "alice@example.com", "password": "secret123"})
    data = login.get_json()["data"]
    assert client.post("/api/v1/auth/logout", headers=bearer(data["token"])).status_code == 200
    with app.app_context():
        assert RefreshToken.query.filter_by(user_id=user_id).count() == 0


def test_role_guard(app, client, user_headers):
    resp = client.get("/api/v1/users", headers=user_headers)
    assert resp.status_code == 403
    admin = bearer(token_for(app, make_user(app, "root@example.com", role="admin")))
    assert client.get("/api/v1/users", headers=admin).status_code == 200


# ---- password reset --------------------------------------------------------

def _reset_code(outbox):
    return re.search(r"<strong>(\d{6})</strong>", outbox[-1].html).group(1)


def _other_code(code):
    return f"{(int(code) + 1) % 1000000:06d}"


def _forgot(client, email="alice@example.com"):
    with mail.record_messages() as outbox:
        resp = client.post("/api/v1/auth/forgot-password", json={"email": email})
    return resp, outbox


def test_password_reset_flow(app, user_id):
    client = app.test_client()
    old_token = token_for(app, user_id)

    resp, outbox = _forgot(client)
    assert resp.status_code == 200
    assert resp.get_json()["message"] == "Reset code sent successfully"
    assert outbox[0].recipients == ["alice@example.com"]
    code = _reset_code(outbox)
    with app.app_context():
        stored = db.session.get(User, user_id).password_reset_code
        assert stored and stored != code

    early = client.post("/api/v1/auth/reset-password", json={"email": "alice@example.com", "new_password": "brandnew1"})
    assert early.status_code == 400
    assert early.get_json()["message"] == "Reset code has not been verified"

    wrong = client.post(
        "/api/v1/auth/verify-reset-code", json={"email": "alice@example.com", "reset_code": _other_code(code)},
    )
    assert wrong.status_code == 400
    assert wrong.get_json()["message"] == "Invalid reset code"

    resp = client.post("/api/v1/auth/verify-reset-code", json={"email": "alice@example.com", "reset_code": code})
    assert resp.status_code == 200

    resp = client.post("/api/v1/auth/reset-password", json={"email": "alice@example.com", "new_password": "brandnew1"})
    assert resp.status_code == 200
    new_token = resp.get_json()["data"]["token"]

    client = app.test_client()
    assert client.get("/api/v1/auth/me", headers=bearer(old_token)).status_code == 401
    assert client.get("/api/v1/auth/me", headers=bearer(new_token)).status_code == 200
    login = {"email": "alice@example.com", "password": "brandnew1"}
    assert client.post("/api/v1/auth/login", json=login).status_code == 200
    login["password"] = "secret123"
    assert client.post("/api/v1/auth/login", json=login).status_code == 401

    # the code is single-use
    again = client.post("/api/v1/auth/reset-password", json={"email": "alice@example.com", "new_password": "other123"})
    assert again.status_code == 400


def test_forgot_password_unknown_email(client):
    resp, outbox = _forgot(client, "nobody@example.com")
    assert resp.status_code == 404
    assert outbox == []


def test_expired_reset_code(app, client, user_id):
    _, outbox = _forgot(client)
    with app.app_context():
        db.session.get(User, user_id).password_reset_expires = utcnow() - timedelta(minutes=1)
        db.session.commit()
    resp = client.post(
        "/api/v1/auth/verify-reset-code", json={"email": "alice@example.com", "reset_code": _reset_code(outbox)},
    )
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "Reset code is invalid or has expired"


def test_reset_code_locks_after_repeated_guesses(client, user_id):
    _, outbox = _forgot(client)
    code = _reset_code(outbox)
    for _ in range(auth_service.MAX_RESET_ATTEMPTS):
        body = {"email": "alice@example.com", "reset_code": _other_code(code)}
        assert client.post("/api/v1/auth/verify-reset-code", json=body).status_code == 400

    resp = client.post("/api/v1/auth/verify-reset-code", json={"email": "alice@example.com", "reset_code": code})
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "Reset code is invalid or has expired"


def test_reset_code_is_dropped_when_mail_fails(app, client, user_id, monkeypatch):
    def broken_send(message):
        raise ConnectionRefusedError("smtp down")

    monkeypatch.setattr(mail, "send", broken_send)
    resp = client.post("/api/v1/auth/forgot-password", json={"email": "alice@example.com"})
    assert resp.status_code == 500
    assert resp.get_json()["message"] == "There was an error sending the email. Try again later"
    with app.app_context():
        assert db.session.get(User, user_id).password_reset_code is None


# ---- email verification ----------------------------------------------------

def _verify_token(outbox):
    return re.search(r'/api/v1/auth/verify/([^"]+)"', outbox[-1].html).group(1)


def test_signup_sends_verification_link(client):
    with mail.record_messages() as outbox:
        data = _signup(client, "new@example.com").get_json()["data"]
    assert data["user"]["is_verified"] is False
    assert outbox[0].recipients == ["new@example.com"]

    resp = client.get(f"/api/v1/auth/verify/{_verify_token(outbox)}")
    assert resp.status_code == 200
    assert resp.get_json()["data"]["user"]["is_verified"] is True

    assert client.get("/api/v1/auth/verify/not-a-token").status_code == 404
    resend = client.post("/api/v1/auth/resend-email", json={"email": "new@example.com"})
    assert resend.status_code == 400


def test_signup_survives_mail_outage(client, monkeypatch):
    def broken_send(message):
        raise ConnectionRefusedError("smtp down")

    monkeypatch.setattr(mail, "send", broken_send)
    assert _signup(client, "new@example.com").status_code == 201


def test_login_requires_verified_email_when_enabled(app, client, user_id):
    app.config["REQUIRE_EMAIL_VERIFICATION"] = True
    login = {"email": "alice@example.com", "password": "secret123"}
    assert client.post("/api/v1/auth/login", json=login).status_code == 403
    assert client.post("/api/v1/auth/resend-email", json={"email": "nobody@example.com"}).status_code == 404

    with mail.record_messages() as outbox:
        resp = client.post("/api/v1/auth/resend-email", json={"email": "alice@example.com"})
    assert resp.get_json()["message"] == "Email sent successfully"
    assert client.get(f"/api/v1/auth/verify/{_verify_token(outbox)}").status_code == 200
    assert client.post("/api/v1/auth/login", json=login).status_code == 200


def test_email_change_needs_fresh_verification(app, client, user_id, user_headers):
    with app.app_context():
        token = auth_service.email_verification_token(db.session.get(User, user_id))
    assert client.get(f"/api/v1/auth/verify/{token}").status_code == 200

    resp = client.patch("/api/v1/users/me", json={"email": "alice.new@example.com"}, headers=user_headers)
    assert resp.get_json()["data"]["user"]["is_verified"] is False
    assert client.get(f"/api/v1/auth/verify/{token}").status_code == 404
