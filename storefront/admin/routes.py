from . import bp
from ..services import stats_service
from ..utils.api import ok
from ..utils.decorators import admin_required


@bp.get("/stats/orders")
@admin_required
def order_stats():
    return ok("order stats", stats_service.order_stats())


@bp.get("/stats/products")
@admin_required
def product_stats():
    return ok("product stats", stats_service.product_stats())
