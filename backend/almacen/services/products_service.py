# Overview: Product creation and removal; the starting quantity enters the stock ledger as an 'inicial' movement.

from __future__ import annotations

from ..extensions import db
from ..models import Product
from ..decimal_utils import money, quantity as to_quantity
from ..validation import ValidationError
from . import stock_service
from .concurrency import begin_write, run_with_retry
from .errors import InvalidQuantityError, NotFoundError


def create_product(
    name: str,
    stock=0,
    unit: str = "unidad",
    cost=0,
    description: str | None = None,
    active: bool = True,
) -> Product:
    """
    Create a product and record its starting stock.

    The row is inserted with stock 0 and the starting quantity is applied
    through the stock ledger, so Product.stock always replays from zero.
    """
    if not name or not str(name).strip():
        raise ValidationError("name is required")

    try:
        starting = to_quantity(stock)
    except ValueError:
        raise InvalidQuantityError("stock must be a number")
    if starting < 0:
        raise InvalidQuantityError("stock cannot be negative")

    try:
        unit_cost = money(cost)
    except ValueError:
        raise ValidationError("cost must be a number")
    if unit_cost < 0:
        raise ValidationError("cost cannot be negative")

    def _op():
        begin_write()
        product = Product(
            name=str(name).strip(),
            description=description,
            stock=0,
            unit=unit or "unidad",
            cost=unit_cost,
            active=active,
        )
        db.session.add(product)
        db.session.flush()

        stock_service.record_initial_stock(product, starting)

        db.session.commit()
        return product

    return run_with_retry(_op)


def get_product(product_id: int) -> Product:
    product = db.session.query(Product).filter_by(id=product_id).first()
    if product is None:
        raise NotFoundError(f"Product {product_id} not found")
    return product


def delete_product(product_id: int) -> None:
    """
    Delete a product and its stock movements.

    Sale lines keep their name/price snapshot; their product_id becomes NULL,
    so reversing those sales later skips the restock for this product.
    """
    def _op():
        begin_write()
        product = get_product(product_id)
        db.session.delete(product)
        db.session.commit()

    run_with_retry(_op)
