from datetime import datetime, timedelta
from decimal import Decimal
from io import BytesIO

import pytest

from storefront.extensions import db
from storefront.model import Product
from storefront.services import rental_service
from storefront.utils.dates import utcnow

from conftest import make_product, make_user, token_for, bearer


@pytest.fixture
def rentable_id(app, category_id):
    return make_product(
        app, category_id, title="Camera", price="800.00", stock=3,
        is_rentable=True, rental_price_per_day=Decimal("25.00"), rental_deposit=Decimal("200.00"), rental_stock=1,
    )


@pytest.fixture(autouse=True)
def fake_uploads(monkeypatch):
    monkeypatch.setattr(
        "storefront.rental.routes.save_image",
        lambda file_storage, folder="products", name_hint=None: f"https://img.test/{folder}/{file_storage.filename}",
    )


def _dates(start_in_days=1, length_days=3):
    start = (utcnow() + timedelta(days=start_in_days)).replace(microsecond=0)
    return start.isoformat(), (start + timedelta(days=length_days)).isoformat()


def _request(client, headers, product_id, start=None, end=None, with_cards=True):
    if start is None:
        start, end = _dates()
    data = {
        "product_id": str(product_id),
        "full_name": "Alice Doe",
        "phone": "0100",
        "address": "1 Nile St",
        "id_card_number": "29901011234567",
        "requested_start_date": start,
        "requested_end_date": end,
    }
    if with_cards:
        data["id_card_front"] = (BytesIO(b"front"), "front.png")
        data["id_card_back"] = (BytesIO(b"back"), "back.png")
    return client.post("/api/v1/rental-requests", data=data, headers=headers, content_type="multipart/form-data")


def test_rental_days_round_up():
    start = datetime(2030, 1, 1, 10, 0)
    assert rental_service.rental_days_between(start, start + timedelta(days=2)) == 2
    assert rental_service.rental_days_between(start, start + timedelta(days=2, hours=1)) == 3
    assert rental_service.rental_price(3, Decimal("25.00")) == Decimal("75.00")


def test_create_rental_request(client, user_headers, rentable_id):
    resp = _request(client, user_headers, rentable_id)
    assert resp.status_code == 201
    rr = resp.get_json()["data"]["rental_request"]
    assert rr["status"] == "pending"
    assert rr["rental_days"] == 3
    assert rr["total_price"] == 75.0
    assert rr["deposit_amount"] == 200.0
    assert rr["id_card_images"]["front"] == "https://img.test/id-cards/front.png"


def test_create_rejects_bad_requests(client, user_headers, rentable_id, product_id):
    assert _request(client, user_headers, product_id).status_code == 400
    assert _request(client, user_headers, rentable_id, with_cards=False).status_code == 400

    past_start, past_end = _dates(start_in_days=-3)
    assert _request(client, user_headers, rentable_id, past_start, past_end).status_code == 400

    start, _ = _dates()
    assert _request(client, user_headers, rentable_id, start, start).status_code == 400


def test_approval_holds_rental_stock(app, client, user_headers, admin_headers, rentable_id):
    first = _request(client, user_headers, rentable_id).get_json()["data"]["rental_request"]["id"]
    second = _request(client, user_headers, rentable_id).get_json()["data"]["rental_request"]["id"]

    resp = client.patch(f"/api/v1/rental-requests/{first}/status", json={"status": "approved"}, headers=admin_headers)
    assert resp.status_code == 200
    assert resp.get_json()["data"]["rental_request"]["approved_at"] is not None
    with app.app_context():
        assert db.session.get(Product, rentable_id).rental_stock == 0

    resp = client.patch(f"/api/v1/rental-requests/{second}/status", json={"status": "approved"}, headers=admin_headers)
    assert resp.status_code == 400

    client.patch(f"/api/v1/rental-requests/{first}/status", json={"status": "completed"}, headers=admin_headers)
    with app.app_context():
        assert db.session.get(Product, rentable_id).rental_stock == 1


def test_status_changes_follow_the_lifecycle(app, client, user_headers, admin_headers, rentable_id):
    rr_id = _request(client, user_headers, rentable_id).get_json()["data"]["rental_request"]["id"]
    url = f"/api/v1/rental-requests/{rr_id}/status"

    resp = client.patch(url, json={"status": "active"}, headers=admin_headers)
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "Cannot change rental status from pending to active"
    assert client.patch(url, json={"status": "completed"}, headers=admin_headers).status_code == 400

    for status in ("approved", "active", "completed"):
        assert client.patch(url, json={"status": status}, headers=admin_headers).status_code == 200
    with app.app_context():
        assert db.session.get(Product, rentable_id).rental_stock == 1

    for status in ("active", "approved", "completed", "cancelled"):
        assert client.patch(url, json={"status": status}, headers=admin_headers).status_code == 400
    with app.app_context():
        assert db.session.get(Product, rentable_id).rental_stock == 1


def test_return_only_after_completion(client, user_headers, admin_headers, rentable_id):
    rr_id = _request(client, user_headers, rentable_id).get_json()["data"]["rental_request"]["id"]
    body = {"return_condition": "good", "deposit_returned_amount": 150}
    assert client.patch(f"/api/v1/rental-requests/{rr_id}/return", json=body, headers=admin_headers).status_code == 400

    client.patch(f"/api/v1/rental-requests/{rr_id}/status", json={"status": "approved"}, headers=admin_headers)
    client.patch(f"/api/v1/rental-requests/{rr_id}/status", json={"status": "completed"}, headers=admin_headers)

    too_much = {"return_condition": "good", "deposit_returned_amount": 500}
    assert client.patch(f"/api/v1/rental-requests/{rr_id}/return", json=too_much, headers=admin_headers).status_code == 400

    resp = client.patch(f"/api/v1/rental-requests/{rr_id}/return", json=body, headers=admin_headers)
    rr = resp.get_json()["data"]["rental_request"]
    assert rr["return_condition"] == "good"
    assert rr["deposit_returned"] is True
    assert rr["deposit_returned_amount"] == 150.0


def test_owner_cancels_pending_only(app, client, user_headers, admin_headers, rentable_id):
    rr_id = _request(client, user_headers, rentable_id).get_json()["data"]["rental_request"]["id"]
    stranger = bearer(token_for(app, make_user(app, "mallory@example.com")))
    assert client.patch(f"/api/v1/rental-requests/{rr_id}/cancel", headers=stranger).status_code == 403
    assert client.get(f"/api/v1/rental-requests/{rr_id}", headers=stranger).status_code == 403

    resp = client.patch(f"/api/v1/rental-requests/{rr_id}/cancel", headers=user_headers)
    assert resp.get_json()["data"]["rental_request"]["status"] == "cancelled"
    assert client.patch(f"/api/v1/rental-requests/{rr_id}/cancel", headers=user_headers).status_code == 400


def test_listings_and_stats(client, user_headers, admin_headers, rentable_id):
    _request(client, user_headers, rentable_id)
    _request(client, user_headers, rentable_id)

    mine = client.get("/api/v1/rental-requests/my-requests", headers=user_headers).get_json()["data"]
    assert mine["meta"]["total"] == 2
    assert client.get("/api/v1/rental-requests", headers=user_headers).status_code == 403

    pending = client.get("/api/v1/rental-requests?status=pending", headers=admin_headers).get_json()["data"]
    assert pending["meta"]["total"] == 2
    assert client.get("/api/v1/rental-requests?status=lost", headers=admin_headers).status_code == 400

    stats = client.get("/api/v1/rental-requests/stats", headers=admin_headers).get_json()["data"]
    assert stats["total_requests"] == 2
    assert stats["status_breakdown"][0]["status"] == "pending"
