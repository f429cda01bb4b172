from flask import Blueprint

bp = Blueprint("rental", __name__, url_prefix="/api/v1/rental-requests")

from . import routes  # noqa: E402,F401
