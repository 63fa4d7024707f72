# backend/almacen/routes/cash_register.py
"""
Cash Register (Caja Diaria) API Routes

DESIGN:
- Session lifecycle: open -> close (immutable once closed)
- At most one open session; opening a second answers 409
- Manual movements are ingreso/egreso only; ventas come from the sales service
- Every route answers 403 while the caja module is disabled
"""

from flask import Blueprint, request, jsonify, current_app

from ..decimal_utils import to_number
from ..models import CashMovement, REGISTER_OPEN, REGISTER_CLOSED
from ..services import register_service
from ..services.errors import NotFoundError, error_status
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_cash_movement,
)


cash_register_bp = Blueprint("cash_register", __name__, url_prefix="/api/cash-register")

CASH_MOVEMENT_POLICY = ModelValidationPolicy(
    writable_fields={"type", "amount", "description", "category"},
    required_on_create={"type", "amount"},
)


@cash_register_bp.before_request
def require_caja_module():
    if not register_service.is_enabled():
        return jsonify({"error": "Cash register module is disabled"}), 403
    return None


@cash_register_bp.get("")
def list_registers_route():
    """
    List sessions, newest first.

    Query: ?status=open|closed (optional), ?limit=N (optional)
    """
    status = request.args.get("status")
    if status and status not in (REGISTER_OPEN, REGISTER_CLOSED):
        return jsonify({"error": "status must be open or closed"}), 400
    limit = request.args.get("limit", type=int)

    registers = register_service.list_registers(status=status, limit=limit)
    return jsonify({"registers": [r.to_dict() for r in registers]}), 200


@cash_register_bp.post("")
def open_register_route():
    """
    Open a new session.

    Request body (all optional):
    {
        "opening_amount": 1000,   // defaults to the last closing amount
        "note": "Turno mañana"
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        register = register_service.open_register(
            opening_amount=data.get("opening_amount"),
            note=data.get("note") or "",
        )
        return jsonify({"register": register.to_dict()}), 201

    except ValueError as e:
        return jsonify({"error": str(e)}), error_status(e)
    except Exception:
        current_app.logger.exception("Failed to open cash register")
        return jsonify({"error": "Internal server error"}), 500


@cash_register_bp.get("/current")
def current_register_route():
    """Detail of the open session, or {"register": null}."""
    register = register_service.get_open_register()
    if register is None:
        return jsonify({"register": None}), 200
    return jsonify({"register": register_service.get_register_detail(register.id)}), 200


@cash_register_bp.get("/<int:register_id>")
def get_register_route(register_id: int):
    """Session with movements, total_ingresos, total_egresos and calculated_expected."""
    try:
        return jsonify({"register": register_service.get_register_detail(register_id)}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@cash_register_bp.put("/<int:register_id>")
def close_register_route(register_id: int):
    """
    Close a session.

    Request body:
    {
        "closing_amount": 1400,   // cash counted in the drawer
        "note": "Cierre sin novedades"  (optional)
    }

    difference = closing_amount - expected_amount (negative = faltante).
    """
    try:
        data = request.get_json(silent=True) or {}
        closing_amount = data.get("closing_amount")
        if closing_amount is None:
            return jsonify({"error": "closing_amount required"}), 400

        register = register_service.close_register(
            register_id,
            closing_amount,
            note=data.get("note"),
        )
        ingresos, egresos = register_service.get_totals(register.id)
        body = register.to_dict()
        body.update({"total_ingresos": to_number(ingresos), "total_egresos": to_number(egresos)})
        return jsonify({"register": body}), 200

    except (NotFoundError, ValueError) as e:
        return jsonify({"error": str(e)}), error_status(e)
    except Exception:
        current_app.logger.exception("Failed to close cash register")
        return jsonify({"error": "Internal server error"}), 500


@cash_register_bp.get("/<int:register_id>/movements")
def list_movements_route(register_id: int):
    try:
        movements = register_service.list_movements(register_id, newest_first=True)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"movements": [m.to_dict() for m in movements]}), 200


@cash_register_bp.post("/<int:register_id>/movements")
def create_movement_route(register_id: int):
    """
    Record a manual movement.

    Request body:
    {
        "type": "ingreso" | "egreso",
        "amount": 200,
        "description": "Cambio",   (optional)
        "category": "otro"         (optional)
    }
    """
    try:
        data = validate_payload(
            model=CashMovement,
            payload=request.get_json(silent=True),
            policy=CASH_MOVEMENT_POLICY,
            partial=False,
        )
        enforce_rules_cash_movement(data)

        movement = register_service.record_movement(
            register_id,
            data["type"],
            data["amount"],
            description=data.get("description", ""),
            category=data.get("category") or "otro",
        )
        return jsonify({"movement": movement.to_dict()}), 201

    except (NotFoundError, ValueError) as e:
        return jsonify({"error": str(e)}), error_status(e)
    except Exception:
        current_app.logger.exception("Failed to record cash movement")
        return jsonify({"error": "Internal server error"}), 500
