# backend/almacen/routes/sales.py
"""
Sales API Routes

DESIGN:
- POST records the sale, its lines and the stock decrements in one commit
- Cash sales are then posted to the open register; a failure there is logged
  and the sale still answers 201
- DELETE reverses the sale: stock comes back as 'devolucion' movements and the
  sale disappears
"""

from flask import Blueprint, request, jsonify, current_app

from ..services import sales_service
from ..services.errors import NotFoundError, error_status
from ..time_utils import parse_range_bound


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.get("")
def list_sales_route():
    """
    List sales newest first.

    Query: ?from=YYYY-MM-DD[THH:MM] &to=YYYY-MM-DD[THH:MM] (both inclusive)
    """
    try:
        date_from = parse_range_bound(request.args.get("from"), end_of_day=False)
        date_to = parse_range_bound(request.args.get("to"), end_of_day=True)
    except ValueError:
        return jsonify({"error": "from/to must be ISO-8601 dates"}), 400

    sales = sales_service.list_sales(date_from=date_from, date_to=date_to)
    return jsonify({"sales": [s.to_dict() for s in sales]}), 200


@sales_bp.post("")
def create_sale_route():
    """
    Create a sale.

    Request body:
    {
        "items": [
            {"product_id": 1, "quantity": 2, "price": 10, "size": 1, "product_name": "..."}
        ],
        "payment_method": "efectivo" | "tarjeta" | "transferencia",
        "grand_total": 25,        (optional override)
        "employee_id": 3,         (optional)
        "employee_name": "Ana"    (optional)
    }
    """
    try:
        data = request.get_json(silent=True) or {}

        sale = sales_service.create_sale(
            items=data.get("items"),
            payment_method=data.get("payment_method"),
            grand_total=data.get("grand_total"),
            employee_id=data.get("employee_id"),
            employee_name=data.get("employee_name"),
        )
        return jsonify({"sale": sale.to_dict()}), 201

    except (NotFoundError, ValueError) as e:
        return jsonify({"error": str(e)}), error_status(e)
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/<int:sale_id>")
def get_sale_route(sale_id: int):
    try:
        sale = sales_service.get_sale(sale_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"sale": sale.to_dict()}), 200


@sales_bp.delete("/<int:sale_id>")
def delete_sale_route(sale_id: int):
    """Reverse and delete a sale. Its cash movement, if any, stays in the register."""
    try:
        sales_service.reverse_sale(sale_id)
        return jsonify({"ok": True}), 200

    except (NotFoundError, ValueError) as e:
        return jsonify({"error": str(e)}), error_status(e)
    except Exception:
        current_app.logger.exception("Failed to reverse sale %s", sale_id)
        return jsonify({"error": "Internal server error"}), 500
