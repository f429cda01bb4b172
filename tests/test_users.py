from io import BytesIO

import cloudinary.uploader

from storefront.extensions import db
from storefront.model import User

from conftest import bearer, make_user, token_for


def test_me_and_profile_update(client, user_headers, admin_id):
    resp = client.patch("/api/v1/users/me", json={"name": "Alice B", "phone": " 555 "}, headers=user_headers)
    user = resp.get_json()["data"]["user"]
    assert user["name"] == "Alice B"
    assert user["phone"] == "555"

    resp = client.patch("/api/v1/users/me", json={"email": "admin@example.com"}, headers=user_headers)
    assert resp.status_code == 400

    resp = client.patch("/api/v1/users/me", json={"password": "sneaky1"}, headers=user_headers)
    assert resp.status_code == 400


def test_me_cannot_change_own_role(app, client, user_headers, user_id):
    client.patch("/api/v1/users/me", json={"role": "admin"}, headers=user_headers)
    with app.app_context():
        assert db.session.get(User, user_id).role == "user"


def test_admin_user_management(app, client, admin_headers, user_id):
    listing = client.get("/api/v1/users?keyword=alice", headers=admin_headers).get_json()["data"]
    assert [u["email"] for u in listing["items"]] == ["alice@example.com"]
    assert "password_hash" not in listing["items"][0]

    resp = client.post(
        "/api/v1/users",
        json={"name": "Dave", "email": "dave@example.com", "password": "secret123"},
        headers=admin_headers,
    )
    assert resp.status_code == 201
    dave_id = resp.get_json()["data"]["user"]["id"]

    resp = client.put(f"/api/v1/users/{dave_id}", json={"is_blocked": True}, headers=admin_headers)
    assert resp.get_json()["data"]["user"]["is_blocked"] is True

    resp = client.patch(f"/api/v1/users/{user_id}/role", json={"role": "admin"}, headers=admin_headers)
    assert resp.get_json()["data"]["user"]["role"] == "admin"
    assert client.patch(f"/api/v1/users/{user_id}/role", json={"role": "boss"}, headers=admin_headers).status_code == 400

    assert client.delete(f"/api/v1/users/{dave_id}", headers=admin_headers).status_code == 200
    assert client.get(f"/api/v1/users/{dave_id}", headers=admin_headers).status_code == 404


def test_user_listing_ignores_password_hash_params(client, admin_headers, user_id):
    for query in ("password_hash=x", "password_hash[gt]=zzzz", "password_hash[in]=a,b", "password_hash[ne]=x"):
        meta = client.get(f"/api/v1/users?{query}", headers=admin_headers).get_json()["data"]["meta"]
        assert meta["total"] == 2, query

    by_id = client.get("/api/v1/users?sort=-id", headers=admin_headers).get_json()["data"]["items"]
    by_hash = client.get("/api/v1/users?sort=password_hash", headers=admin_headers).get_json()["data"]["items"]
    assert [u["id"] for u in by_hash] == [u["id"] for u in by_id]


def test_last_admin_is_protected(client, admin_headers, admin_id):
    resp = client.patch(f"/api/v1/users/{admin_id}/role", json={"role": "user"}, headers=admin_headers)
    assert resp.status_code == 400
    assert client.delete(f"/api/v1/users/{admin_id}", headers=admin_headers).status_code == 400


def test_admin_sets_password(app, client, admin_headers, user_id):
    resp = client.patch(f"/api/v1/users/{user_id}/password", json={"password": "reset-pass"}, headers=admin_headers)
    assert resp.status_code == 200
    login = client.post("/api/v1/auth/login", json={"email": "alice@example.com", "password": "reset-pass"})
    assert login.status_code == 200


def test_profile_image_goes_to_cloudinary_when_configured(app, client, user_headers, monkeypatch):
    app.config["CLOUDINARY_CLOUD_NAME"] = "demo"
    calls = []

    def fake_upload(stream, **options):
        calls.append(options)
        return {"secure_url": f"https://res.cloudinary.test/{options['folder']}/{options['public_id']}.png"}

    monkeypatch.setattr(cloudinary.uploader, "upload", fake_upload)
    resp = client.patch(
        "/api/v1/users/me/image",
        data={"profile_image": (BytesIO(b"\x89PNG fake"), "me.png", "image/png")},
        headers=user_headers,
        content_type="multipart/form-data",
    )
    assert resp.status_code == 200
    assert resp.get_json()["data"]["user"]["profile_image"].startswith("https://res.cloudinary.test/users/")
    assert calls[0]["transformation"] == [{"width": 500, "height": 500, "crop": "limit"}]


def test_profile_image_rejects_non_images(client, user_headers):
    resp = client.patch(
        "/api/v1/users/me/image",
        data={"profile_image": (BytesIO(b"hello"), "notes.txt", "text/plain")},
        headers=user_headers,
        content_type="multipart/form-data",
    )
    assert resp.status_code == 400


def test_addresses(client, user_headers):
    resp = client.post("/api/v1/addresses", json={"alias": "home", "city": "Giza", "street": "2 Pyramid Rd"},
                       headers=user_headers)
    assert resp.status_code == 201
    addresses = resp.get_json()["data"]["addresses"]
    assert len(addresses) == 1

    assert client.post("/api/v1/addresses", json={"city": "Giza"}, headers=user_headers).status_code == 400

    resp = client.delete(f"/api/v1/addresses/{addresses[0]['id']}", headers=user_headers)
    assert resp.get_json()["data"]["addresses"] == []


def test_addresses_are_private(app, client, user_headers):
    resp = client.post("/api/v1/addresses", json={"city": "Giza", "street": "2 Pyramid Rd"}, headers=user_headers)
    address_id = resp.get_json()["data"]["addresses"][0]["id"]
    other = bearer(token_for(app, make_user(app, "eve@example.com")))
    assert client.delete(f"/api/v1/addresses/{address_id}", headers=other).status_code == 404


def test_wishlist(client, user_headers, product_id):
    resp = client.post("/api/v1/wishlist", json={"product_id": product_id}, headers=user_headers)
    assert resp.get_json()["data"]["results"] == 1
    # adding twice keeps a single entry
    resp = client.post("/api/v1/wishlist", json={"product_id": product_id}, headers=user_headers)
    assert resp.get_json()["data"]["results"] == 1

    check = client.get(f"/api/v1/wishlist/check/{product_id}", headers=user_headers).get_json()["data"]
    assert check["in_wishlist"] is True

    resp = client.delete(f"/api/v1/wishlist/{product_id}", headers=user_headers)
    assert resp.get_json()["data"]["wishlist"] == []

    client.post("/api/v1/wishlist", json={"product_id": product_id}, headers=user_headers)
    assert client.delete("/api/v1/wishlist", headers=user_headers).get_json()["data"]["results"] == 0
    assert client.post("/api/v1/wishlist", json={"product_id": 999}, headers=user_headers).status_code == 404
