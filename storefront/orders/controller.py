from quart import Blueprint, jsonify, request

from .service import create_order, get_order, list_orders, set_order_status

bp = Blueprint("orders", __name__)

_STATUS_BY_CODE = {
    "validation_error": 400,
    "not_found": 404,
    "persistence_error": 503,
    "internal_error": 500,
}


def _respond(result, ok_status: int = 200):
    if result.get("success"):
        return jsonify(result), ok_status
    return jsonify(result), _STATUS_BY_CODE.get(result.get("code"), 400)


@bp.post("/orders")
async def orders_create():
    data = await request.get_json(force=True, silent=True)
    result = await create_order(data if data is not None else {})
    return _respond(result, 201)


@bp.get("/orders")
async def orders_list():
    result = await list_orders(
        status=request.args.get("status"),
        limit=request.args.get("limit"),
        offset=request.args.get("offset"),
    )
    return _respond(result)


@bp.get("/orders/<order_id>")
async def orders_detail(order_id: str):
    return _respond(await get_order(order_id))


@bp.put("/orders/<order_id>/status")
async def orders_set_status(order_id: str):
    data = await request.get_json(force=True, silent=True) or {}
    result = await set_order_status(order_id, data.get("status") if isinstance(data, dict) else None)
    return _respond(result)
