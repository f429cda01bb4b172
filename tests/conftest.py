from datetime import timedelta
from decimal import Decimal

import pytest

from storefront import create_app
from storefront.extensions import db
from storefront.model import User, Category, Product, Coupon
from storefront.services import auth_service
from storefront.utils.dates import utcnow


@pytest.fixture
def app():
    app = create_app("testing")
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def make_user(app, email, role="user", password="secret123", name=None):
    with app.app_context():
        user = User(
            email=email,
            name=name or email.split("@")[0],
            role=role,
            password_hash=auth_service.hash_password(password),
        )
        db.session.add(user)
        db.session.commit()
        return user.id


def token_for(app, user_id):
    with app.app_context():
        return auth_service.issue_access_token(db.session.get(User, user_id))


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_id(app):
    return make_user(app, "admin@example.com", role="admin")


@pytest.fixture
def user_id(app):
    return make_user(app, "alice@example.com")


@pytest.fixture
def admin_headers(app, admin_id):
    return bearer(token_for(app, admin_id))


@pytest.fixture
def user_headers(app, user_id):
    return bearer(token_for(app, user_id))


@pytest.fixture
def category_id(app):
    with app.app_context():
        c = Category(name="Electronics", slug="electronics")
        db.session.add(c)
        db.session.commit()
        return c.id


def make_product(app, category_id, title="Widget", price="20.00", stock=10, **extra):
    with app.app_context():
        p = Product(
            title=title,
            slug=title.lower(),
            description="A product used in the test suite.",
            price=Decimal(price),
            stock=stock,
            category_id=category_id,
            **extra,
        )
        db.session.add(p)
        db.session.commit()
        return p.id


@pytest.fixture
def product_id(app, category_id):
    return make_product(app, category_id)


def make_coupon(app, code="SAVE10", discount="10", expires_in=timedelta(days=7)):
    with app.app_context():
        c = Coupon(code=code, discount=Decimal(discount), expires_at=utcnow() + expires_in)
        db.session.add(c)
        db.session.commit()
        return c.id
