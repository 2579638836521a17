from quart import Blueprint, jsonify

from .service import dashboard_stats

bp = Blueprint("reporting", __name__)


@bp.get("/admin/stats")
async def admin_stats():
    return jsonify(await dashboard_stats())
