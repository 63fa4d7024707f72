# Overview: Service-layer operations for the stock ledger; the only writer of Product.stock.

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from ..extensions import db
from ..models import Product, StockMovement, STOCK_MOVEMENT_TYPES
from ..decimal_utils import ZERO, quantity as to_quantity
from .concurrency import begin_write, lock_for_update, run_with_retry
from .errors import InvalidQuantityError, NotFoundError
"""
Stock Ledger Invariants (authoritative)

- Product.stock == running application of every StockMovement for the product,
  where each step is new_stock = max(0, previous_stock + quantity).
- Stock never goes below zero. An oversized decrement is clamped, and the
  movement still records the quantity that was requested.
- Movements are append-only. Corrections are new movements, never edits.
- apply_movement() touches exactly one product row and one movement row and,
  with commit=False, runs inside the caller's transaction.

Type policy:
- inicial: starting stock at product creation, only when > 0
- reposicion: restock, quantity > 0
- ajuste: manual correction, any non-zero quantity
- venta: sale line, quantity < 0 (-(line quantity * variant size))
- devolucion: sale reversal, quantity > 0
"""

MANUAL_MOVEMENT_TYPES = ("reposicion", "ajuste")


def _check_quantity_policy(movement_type: str, qty: Decimal) -> None:
    if movement_type not in STOCK_MOVEMENT_TYPES:
        raise InvalidQuantityError(f"Unknown stock movement type: {movement_type}")

    if movement_type == "ajuste":
        if qty == 0:
            raise InvalidQuantityError("Adjustment quantity must be non-zero")
    elif movement_type == "venta":
        if qty >= 0:
            raise InvalidQuantityError("Sale movements must decrease stock")
    elif qty <= 0:
        # inicial, reposicion, devolucion
        raise InvalidQuantityError(f"{movement_type} quantity must be positive")


def _get_product(product_id: int, *, lock: bool = False) -> Product:
    query = db.session.query(Product).filter_by(id=product_id)
    if lock:
        query = lock_for_update(query)
    product = query.first()
    if product is None:
        raise NotFoundError(f"Product {product_id} not found")
    return product


def _write_movement(product_id, movement_type, qty, note, reference_id) -> StockMovement:
    product = _get_product(product_id, lock=True)

    previous_stock = to_quantity(product.stock)
    new_stock = max(ZERO, previous_stock + qty)

    product.stock = new_stock

    movement = StockMovement(
        product_id=product.id,
        product_name=product.name,
        type=movement_type,
        quantity=qty,
        previous_stock=previous_stock,
        new_stock=new_stock,
        note=note or "",
        reference_id=reference_id,
    )
    db.session.add(movement)
    db.session.flush()
    return movement


def apply_movement(
    product_id: int,
    movement_type: str,
    quantity,
    note: str = "",
    reference_id: int | None = None,
    *,
    commit: bool = True,
) -> StockMovement:
    """
    Apply a signed stock change to one product and append its ledger row.

    The product row is locked for the rest of the transaction. With
    commit=True (default) the call opens its own write transaction, retries
    on lock/stale errors and commits. Pass commit=False to compose several
    movements (a sale, a reversal) into one atomic unit; the caller then owns
    the transaction and commit/rollback.
    """
    try:
        qty = to_quantity(quantity)
    except ValueError:
        raise InvalidQuantityError("quantity must be a number")
    _check_quantity_policy(movement_type, qty)

    if not commit:
        return _write_movement(product_id, movement_type, qty, note, reference_id)

    def _op():
        begin_write()
        movement = _write_movement(product_id, movement_type, qty, note, reference_id)
        db.session.commit()
        return movement

    return run_with_retry(_op)


def record_initial_stock(product: Product, quantity, *, commit: bool = False) -> StockMovement | None:
    """
    Emit the 'inicial' movement for a freshly created product.

    The product must already be flushed with stock 0. Nothing is recorded for
    a zero starting quantity.
    """
    qty = to_quantity(quantity)
    if qty <= 0:
        return None
    return apply_movement(product.id, "inicial", qty, note="Stock inicial", commit=commit)


def post_manual_movement(product_id: int, quantity, movement_type: str = "reposicion", note: str = "") -> StockMovement:
    """
    Restock or adjust a product outside of any sale.

    Owns its transaction, lock and retry. Sale-driven types are refused.
    """
    if movement_type not in MANUAL_MOVEMENT_TYPES:
        raise InvalidQuantityError("Only reposicion and ajuste can be posted manually")

    return apply_movement(product_id, movement_type, quantity, note)


def list_movements(
    *,
    product_id: int | None = None,
    movement_type: str | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    limit: int | None = None,
) -> list[StockMovement]:
    """Newest first. Date bounds are inclusive."""
    q = db.session.query(StockMovement)
    if product_id is not None:
        q = q.filter(StockMovement.product_id == product_id)
    if movement_type:
        q = q.filter(StockMovement.type == movement_type)
    if date_from is not None:
        q = q.filter(StockMovement.created_at >= date_from)
    if date_to is not None:
        q = q.filter(StockMovement.created_at <= date_to)

    q = q.order_by(StockMovement.created_at.desc(), StockMovement.id.desc())
    if limit:
        q = q.limit(limit)
    return q.all()


def get_product_movements(product_id: int, limit: int | None = None) -> tuple[Product, list[StockMovement]]:
    product = _get_product(product_id)
    return product, list_movements(product_id=product_id, limit=limit)


def get_ledger_balance(product_id: int, initial_stock=0) -> Decimal:
    """
    Replay the product's movements from `initial_stock` with per-step clamping.

    Used by the consistency checks; must equal Product.stock.
    """
    balance = to_quantity(initial_stock)
    rows = (
        db.session.query(StockMovement.quantity)
        .filter(StockMovement.product_id == product_id)
        .order_by(StockMovement.id)
        .all()
    )
    for (qty,) in rows:
        balance = max(ZERO, balance + to_quantity(qty))
    return balance
