from flask import Blueprint

bp = Blueprint("address", __name__, url_prefix="/api/v1/addresses")

from . import routes  # noqa: E402,F401
