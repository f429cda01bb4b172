from flask import Blueprint

bp = Blueprint("brand", __name__, url_prefix="/api/v1/brands")

from . import routes  # noqa: E402,F401
