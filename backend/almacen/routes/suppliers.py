# backend/almacen/routes/suppliers.py
"""
Supplier routes.

Cash payments can be mirrored in the open caja as an egreso
(`register_in_caja`, default true).
"""
from flask import Blueprint, request, jsonify, current_app

from ..models import Supplier
from ..services import supplier_service
from ..services.errors import NotFoundError, error_status
from ..time_utils import parse_iso_datetime
from ..validation import ModelValidationPolicy, ValidationError, validate_payload

SUPPLIER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "phone", "email", "note"},
    required_on_create={"name"},
)

suppliers_bp = Blueprint("suppliers", __name__, url_prefix="/api/suppliers")


@suppliers_bp.post("")
def create_supplier_route():
    try:
        data = validate_payload(
            model=Supplier,
            payload=request.get_json(silent=True),
            policy=SUPPLIER_POLICY,
            partial=False,
        )
        supplier = supplier_service.create_supplier(**data)
        return jsonify({"supplier": supplier.to_dict()}), 201

    except ValueError as e:
        return jsonify({"error": str(e)}), error_status(e)
    except Exception:
        current_app.logger.exception("Failed to create supplier")
        return jsonify({"error": "Internal server error"}), 500


@suppliers_bp.get("/<int:supplier_id>")
def get_supplier_route(supplier_id: int):
    try:
        supplier = supplier_service.get_supplier(supplier_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"supplier": supplier.to_dict()}), 200


@suppliers_bp.get("/<int:supplier_id>/payments")
def list_payments_route(supplier_id: int):
    try:
        payments = supplier_service.list_payments(supplier_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"payments": [p.to_dict() for p in payments]}), 200


@suppliers_bp.post("/<int:supplier_id>/payments")
def create_payment_route(supplier_id: int):
    """
    Record a payment to a supplier.

    Request body:
    {
        "amount": 5000,
        "payment_method": "efectivo",
        "date": "2024-03-01T10:00:00Z",   (optional)
        "note": "Factura 0012",           (optional)
        "register_in_caja": true          (optional)
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        if data.get("amount") is None:
            return jsonify({"error": "amount required"}), 400

        try:
            date = parse_iso_datetime(data.get("date"))
        except (AttributeError, ValueError):
            raise ValidationError("date must be an ISO-8601 datetime")

        payment = supplier_service.register_payment(
            supplier_id,
            data["amount"],
            data.get("payment_method") or "efectivo",
            date=date,
            note=data.get("note") or "",
            register_in_caja=bool(data.get("register_in_caja", True)),
        )
        return jsonify({"payment": payment.to_dict()}), 201

    except (NotFoundError, ValueError) as e:
        return jsonify({"error": str(e)}), error_status(e)
    except Exception:
        current_app.logger.exception("Failed to record supplier payment")
        return jsonify({"error": "Internal server error"}), 500
