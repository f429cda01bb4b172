# --- storefront/__init__.py ---
import logging
import os

from flask import Flask

from .config import config_by_name
from .extensions import db, jwt, cors, mail, migrate
from .errors import register_error_handlers
from .utils.api import ok


def create_app(config_name=None):
    config_name = config_name or os.environ.get("APP_CONFIG") or os.environ.get("FLASK_ENV") or "default"
    config_cls = config_by_name.get(config_name, config_by_name["default"])

    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config_cls)
    config_cls.init_app(app)
    app.logger.setLevel(getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO))

    # Init extensions
    db.init_app(app)
    jwt.init_app(app)
    cors.init_app(app, resources={r"/api/*": {"origins": "*"}}, supports_credentials=True)
    mail.init_app(app)
    migrate.init_app(app, db)

    # token callbacks register on import
    from .services import auth_service  # noqa: F401

    register_error_handlers(app)

    # Register blueprints
    from .auth import bp as auth_bp; app.register_blueprint(auth_bp)
    from .user import bp as user_bp; app.register_blueprint(user_bp)
    from .address import bp as address_bp; app.register_blueprint(address_bp)
    from .wishlist import bp as wishlist_bp; app.register_blueprint(wishlist_bp)
    from .category import bp as category_bp; app.register_blueprint(category_bp)
    from .subcategory import bp as subcategory_bp; app.register_blueprint(subcategory_bp)
    from .brand import bp as brand_bp; app.register_blueprint(brand_bp)
    from .product import bp as product_bp; app.register_blueprint(product_bp)
    from .cart import bp as cart_bp; app.register_blueprint(cart_bp)
    from .coupon import bp as coupon_bp; app.register_blueprint(coupon_bp)
    from .order import bp as order_bp; app.register_blueprint(order_bp)
    from .rental import bp as rental_bp; app.register_blueprint(rental_bp)
    from .admin import bp as admin_bp; app.register_blueprint(admin_bp)

    from .cli import register_cli
    register_cli(app)

    @app.get("/")
    def health():
        return ok("API running")

    with app.app_context():
        from . import model  # noqa: F401
        db.create_all()

    app.logger.info("storefront started with %s", config_cls.__name__)
    return app
