# Overview: Flask API routes for the stock ledger; read movements and post restocks/adjustments.

# backend/almacen/routes/stock.py
"""
Stock ledger routes.

LEDGER: movements are append-only. The only manual postings are
'reposicion' (quantity > 0) and 'ajuste' (any non-zero quantity); sale-driven
movements are written by the sales service.
"""
from flask import Blueprint, request, current_app

from ..models import StockMovement, STOCK_MOVEMENT_TYPES
from ..services import stock_service
from ..services.errors import NotFoundError, error_status
from ..time_utils import parse_range_bound
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_stock_movement,
)

STOCK_MOVEMENT_POLICY = ModelValidationPolicy(
    writable_fields={"product_id", "quantity", "type", "note"},
    required_on_create={"product_id", "quantity"},
)

stock_bp = Blueprint("stock", __name__, url_prefix="/api/stock")


@stock_bp.get("")
def list_movements_route():
    """
    List stock movements newest first.

    Query params:
    - product_id: int (optional)
    - type: inicial|reposicion|venta|ajuste|devolucion (optional)
    - from / to: ISO-8601 date or datetime, inclusive (optional)
    - limit: int (optional)
    """
    movement_type = request.args.get("type")
    if movement_type and movement_type not in STOCK_MOVEMENT_TYPES:
        return {"error": f"type must be one of: {', '.join(STOCK_MOVEMENT_TYPES)}"}, 400

    try:
        date_from = parse_range_bound(request.args.get("from"), end_of_day=False)
        date_to = parse_range_bound(request.args.get("to"), end_of_day=True)
    except ValueError:
        return {"error": "from/to must be ISO-8601 dates"}, 400

    movements = stock_service.list_movements(
        product_id=request.args.get("product_id", type=int),
        movement_type=movement_type,
        date_from=date_from,
        date_to=date_to,
        limit=request.args.get("limit", type=int),
    )
    return {"movements": [m.to_dict() for m in movements]}, 200


@stock_bp.get("/<int:product_id>")
def product_movements_route(product_id: int):
    """Product with its movement history. Query: ?limit=N"""
    try:
        product, movements = stock_service.get_product_movements(
            product_id, limit=request.args.get("limit", type=int)
        )
    except NotFoundError as e:
        return {"error": str(e)}, 404

    return {
        "product": product.to_dict(),
        "movements": [m.to_dict() for m in movements],
    }, 200


@stock_bp.post("")
def create_movement_route():
    """
    Post a restock or adjustment.

    Request body:
    {
        "product_id": 1,
        "quantity": 5,              // negative allowed for ajuste
        "type": "reposicion",       (optional, default reposicion)
        "note": "Compra proveedor"  (optional)
    }
    """
    try:
        data = validate_payload(
            model=StockMovement,
            payload=request.get_json(silent=True),
            policy=STOCK_MOVEMENT_POLICY,
            partial=False,
        )
        enforce_rules_stock_movement(data)

        movement = stock_service.post_manual_movement(
            data["product_id"],
            data["quantity"],
            movement_type=data["type"],
            note=data.get("note", ""),
        )
        return {"movement": movement.to_dict()}, 201

    except (NotFoundError, ValueError) as e:
        return {"error": str(e)}, error_status(e)
    except Exception:
        current_app.logger.exception("Failed to post stock movement")
        return {"error": "Internal server error"}, 500
