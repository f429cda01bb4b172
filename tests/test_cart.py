from datetime import timedelta

from conftest import make_product, make_coupon


def _add(client, headers, product_id, quantity):
    return client.post("/api/v1/cart", json={"product_id": product_id, "quantity": quantity}, headers=headers)


def test_empty_cart_when_user_has_none(client, user_headers, user_id):
    resp = client.get("/api/v1/cart", headers=user_headers)
    assert resp.status_code == 200
    cart = resp.get_json()["data"]["cart"]
    assert cart["items"] == []
    assert cart["total_cart_price"] == 0.0
    assert cart["user_id"] == user_id


def test_cart_requires_login(client):
    resp = client.get("/api/v1/cart")
    assert resp.status_code == 401
    assert resp.get_json()["status"] is False


def test_add_merges_and_rejects_over_stock(client, user_headers, product_id):
    resp = _add(client, user_headers, product_id, 3)
    assert resp.status_code == 200
    assert resp.get_json()["data"]["cart"]["total_cart_price"] == 60.0

    resp = _add(client, user_headers, product_id, 3)
    cart = resp.get_json()["data"]["cart"]
    assert len(cart["items"]) == 1
    assert cart["items"][0]["quantity"] == 6
    assert cart["total_cart_price"] == 120.0

    resp = _add(client, user_headers, product_id, 10)
    assert resp.status_code == 400
    body = resp.get_json()
    assert body["statusCode"] == 400
    assert body["data"]["available"] == 10

    cart = client.get("/api/v1/cart", headers=user_headers).get_json()["data"]["cart"]
    assert cart["items"][0]["quantity"] == 6
    assert cart["total_cart_price"] == 120.0


def test_quantity_must_be_positive_integer(client, user_headers, product_id):
    for bad in (0, -1, 1.5, "abc", True):
        resp = _add(client, user_headers, product_id, bad)
        assert resp.status_code == 400, bad


def test_add_unknown_product(client, user_headers):
    resp = _add(client, user_headers, 999, 1)
    assert resp.status_code == 404


def test_update_and_remove_items_keep_total_in_sync(app, client, user_headers, category_id):
    a = make_product(app, category_id, title="Lamp", price="15.50", stock=5)
    b = make_product(app, category_id, title="Desk", price="100.00", stock=2)
    _add(client, user_headers, a, 2)
    cart = _add(client, user_headers, b, 1).get_json()["data"]["cart"]
    assert cart["total_cart_price"] == 131.0

    desk_item = next(i for i in cart["items"] if i["product"]["id"] == b)
    resp = client.put(f"/api/v1/cart/{desk_item['id']}", json={"quantity": 2}, headers=user_headers)
    assert resp.get_json()["data"]["cart"]["total_cart_price"] == 231.0

    resp = client.put(f"/api/v1/cart/{desk_item['id']}", json={"quantity": 3}, headers=user_headers)
    assert resp.status_code == 400

    resp = client.delete(f"/api/v1/cart/{desk_item['id']}", headers=user_headers)
    cart = resp.get_json()["data"]["cart"]
    assert cart["total_cart_price"] == 31.0
    assert [i["product"]["id"] for i in cart["items"]] == [a]


def test_unknown_item_is_not_found(client, user_headers, product_id):
    _add(client, user_headers, product_id, 1)
    assert client.delete("/api/v1/cart/12345", headers=user_headers).status_code == 404


def test_clear_cart(client, user_headers, product_id):
    _add(client, user_headers, product_id, 1)
    resp = client.delete("/api/v1/cart", headers=user_headers)
    assert resp.status_code == 200
    cart = client.get("/api/v1/cart", headers=user_headers).get_json()["data"]["cart"]
    assert cart["id"] is None
    assert client.delete("/api/v1/cart", headers=user_headers).status_code == 404


def test_apply_coupon_discounts_total(app, client, user_headers, product_id):
    make_coupon(app, code="SAVE10", discount="10")
    _add(client, user_headers, product_id, 6)

    resp = client.post("/api/v1/cart/apply-coupon", json={"code": "save10"}, headers=user_headers)
    assert resp.status_code == 200
    cart = resp.get_json()["data"]["cart"]
    assert cart["total_cart_price"] == 120.0
    assert cart["total_price_after_discount"] == 108.0
    assert cart["coupon"] == "SAVE10"


def test_expired_coupon_is_rejected(app, client, user_headers, product_id):
    make_coupon(app, code="OLD", discount="50", expires_in=timedelta(days=-1))
    _add(client, user_headers, product_id, 1)
    resp = client.post("/api/v1/cart/apply-coupon", json={"code": "OLD"}, headers=user_headers)
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "Coupon is invalid or expired"


def test_changing_items_drops_coupon(app, client, user_headers, product_id):
    make_coupon(app)
    _add(client, user_headers, product_id, 2)
    client.post("/api/v1/cart/apply-coupon", json={"code": "SAVE10"}, headers=user_headers)

    cart = _add(client, user_headers, product_id, 1).get_json()["data"]["cart"]
    assert cart["coupon"] is None
    assert cart["total_price_after_discount"] is None
    assert cart["total_cart_price"] == 60.0


def test_remove_coupon(app, client, user_headers, product_id):
    make_coupon(app)
    _add(client, user_headers, product_id, 1)
    client.post("/api/v1/cart/apply-coupon", json={"code": "SAVE10"}, headers=user_headers)
    resp = client.delete("/api/v1/cart/coupon", headers=user_headers)
    cart = resp.get_json()["data"]["cart"]
    assert cart["coupon"] is None
    assert cart["total_cart_price"] == 20.0


def test_coupon_is_reusable(app, client, user_headers, product_id):
    make_coupon(app)
    _add(client, user_headers, product_id, 1)
    for _ in range(2):
        resp = client.post("/api/v1/cart/apply-coupon", json={"code": "SAVE10"}, headers=user_headers)
        assert resp.status_code == 200
        assert resp.get_json()["data"]["cart"]["total_price_after_discount"] == 18.0
