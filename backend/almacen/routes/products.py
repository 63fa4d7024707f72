# Overview: Flask API routes for products; parses input and returns JSON responses.

# backend/almacen/routes/products.py
"""
Product routes.

STOCK: the starting `stock` sent on create is not written to the row
directly; it is posted as an 'inicial' ledger movement. Later changes go
through /api/stock.
"""
from flask import Blueprint, request, current_app

from ..models import Product
from ..services import products_service
from ..services.errors import NotFoundError, error_status
from ..validation import ModelValidationPolicy, validate_payload

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "description", "stock", "unit", "cost", "active"},
    required_on_create={"name"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.post("")
def create_product_route():
    """
    Create a product.

    Request body:
    {
        "name": "Yerba 1kg",
        "stock": 10,          (optional, default 0)
        "unit": "unidad",     (optional)
        "cost": 1500,         (optional)
        "description": "..."  (optional)
    }
    """
    try:
        data = validate_payload(
            model=Product,
            payload=request.get_json(silent=True),
            policy=PRODUCT_POLICY,
            partial=False,
        )
        product = products_service.create_product(
            name=data["name"],
            stock=data.get("stock", 0),
            unit=data.get("unit") or "unidad",
            cost=data.get("cost", 0),
            description=data.get("description"),
            active=data.get("active", True),
        )
        return {"product": product.to_dict()}, 201

    except ValueError as e:
        return {"error": str(e)}, error_status(e)
    except Exception:
        current_app.logger.exception("Failed to create product")
        return {"error": "Internal server error"}, 500


@products_bp.get("/<int:product_id>")
def get_product_route(product_id: int):
    try:
        product = products_service.get_product(product_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return {"product": product.to_dict()}, 200


@products_bp.delete("/<int:product_id>")
def delete_product_route(product_id: int):
    """Delete a product and its stock movements. Sale lines keep their snapshot."""
    try:
        products_service.delete_product(product_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except Exception:
        current_app.logger.exception("Failed to delete product %s", product_id)
        return {"error": "Internal server error"}, 500

    return {"ok": True}, 200
