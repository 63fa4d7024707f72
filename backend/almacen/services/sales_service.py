"""
Sales Service - atomic sale creation and reversal

WHY: A sale touches three ledgers (sale documents, stock, cash). Sale and
stock are written as one transaction; the cash posting is a separate,
best-effort step so a cash register problem never blocks a sale.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from flask import current_app
from sqlalchemy.orm import selectinload

from ..extensions import db
from ..models import Product, Sale, SaleItem, PAYMENT_METHODS
from ..decimal_utils import ZERO, money, quantity as to_quantity
from ..time_utils import utcnow
from ..validation import ValidationError
from . import register_service, stock_service
from .concurrency import begin_write, lock_for_update, run_with_retry
from .errors import InvalidAmountError, InvalidQuantityError, NotFoundError


def _normalize_items(items) -> list[dict]:
    if not items or not isinstance(items, list):
        raise ValidationError("Cart is empty")

    lines = []
    for index, raw in enumerate(items, start=1):
        if not isinstance(raw, dict):
            raise ValidationError(f"Item {index} must be an object")

        product_id = raw.get("product_id")
        if isinstance(product_id, bool) or not isinstance(product_id, int):
            raise ValidationError(f"Item {index}: product_id is required")

        try:
            qty = to_quantity(raw.get("quantity"))
            size = to_quantity(raw["size"] if raw.get("size") is not None else 1)
        except ValueError:
            raise InvalidQuantityError(f"Item {index}: quantity and size must be numbers")
        if qty <= 0:
            raise InvalidQuantityError(f"Item {index}: quantity must be greater than 0")
        if size <= 0:
            raise InvalidQuantityError(f"Item {index}: size must be greater than 0")

        if raw.get("price") is None:
            raise ValidationError(f"Item {index}: price is required")
        try:
            price = money(raw["price"])
        except ValueError:
            raise InvalidAmountError(f"Item {index}: price must be a number")
        if price < 0:
            raise InvalidAmountError(f"Item {index}: price cannot be negative")

        lines.append({
            "product_id": product_id,
            "product_name": raw.get("product_name") or raw.get("name"),
            "quantity": qty,
            "price": price,
            "size": size,
        })
    return lines


def _snapshot_stock(product_ids) -> dict[int, tuple[Product, Decimal]]:
    """
    Lock every product in the cart and capture its pre-sale stock.

    Ascending id order keeps concurrent sales from deadlocking each other.
    A missing product fails here, before anything has been written.
    """
    snapshot = {}
    for product_id in sorted(set(product_ids)):
        product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
        if product is None:
            raise NotFoundError(f"Product {product_id} not found")
        snapshot[product_id] = (product, to_quantity(product.stock))
    return snapshot


def _warn_on_oversell(lines: list[dict], snapshot: dict[int, tuple[Product, Decimal]]) -> None:
    requested: dict[int, Decimal] = {}
    for line in lines:
        requested[line["product_id"]] = requested.get(line["product_id"], ZERO) + line["quantity"] * line["size"]
    for product_id, total in requested.items():
        product, on_hand = snapshot[product_id]
        if total > on_hand:
            current_app.logger.warning(
                "Sale oversells product %s (%s): requested %s, on hand %s; stock will be clamped to 0",
                product_id, product.name, total, on_hand,
            )


def create_sale(
    items,
    payment_method: str,
    grand_total=None,
    employee_id: int | None = None,
    employee_name: str | None = None,
) -> Sale:
    """
    Record a sale: header, lines and one 'venta' stock movement per line,
    committed together. Cash sales are then posted, best effort, to the
    register recorded on the sale.

    grand_total defaults to sum(price * quantity); callers may override it
    (manual discount).
    """
    lines = _normalize_items(items)

    if payment_method not in PAYMENT_METHODS:
        raise ValidationError(f"payment_method must be one of: {', '.join(PAYMENT_METHODS)}")

    override = None
    if grand_total is not None:
        try:
            override = money(grand_total)
        except ValueError:
            raise InvalidAmountError("grand_total must be a number")
        if override < 0:
            raise InvalidAmountError("grand_total cannot be negative")

    def _op():
        begin_write()
        snapshot = _snapshot_stock(line["product_id"] for line in lines)
        _warn_on_oversell(lines, snapshot)

        total = override
        if total is None:
            total = money(sum((line["price"] * line["quantity"] for line in lines), ZERO))

        open_register = register_service.get_open_register() if register_service.is_enabled() else None

        sale = Sale(
            grand_total=total,
            payment_method=payment_method,
            date=utcnow(),
            employee_id=employee_id,
            employee_name=employee_name,
            cash_register_id=open_register.id if open_register else None,
        )
        for line in lines:
            product, _ = snapshot[line["product_id"]]
            sale.items.append(SaleItem(
                product_id=product.id,
                product_name=line["product_name"] or product.name,
                quantity=line["quantity"],
                price=line["price"],
                size=line["size"],
                total=money(line["price"] * line["quantity"]),
            ))
        db.session.add(sale)
        db.session.flush()

        for item in sale.items:
            stock_service.apply_movement(
                item.product_id,
                "venta",
                -(to_quantity(item.quantity) * to_quantity(item.size)),
                note=f"Venta #{sale.id}",
                reference_id=sale.id,
                commit=False,
            )

        db.session.commit()
        return sale

    sale = run_with_retry(_op)

    if payment_method == "efectivo" and register_service.is_enabled():
        _post_cash_sale(sale)

    return get_sale(sale.id)


def _post_cash_sale(sale: Sale) -> None:
    """
    Best-effort cash posting. The sale is already committed; whatever goes
    wrong here is logged and dropped, never raised.
    """
    sale_id = sale.id
    try:
        register_service.record_sale_movement(sale)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to post cash movement for sale %s", sale_id)


def reverse_sale(sale_id: int) -> None:
    """
    Delete a sale and put its stock back.

    Each line with a product gets a 'devolucion' movement of quantity * size;
    then the sale and its items are deleted. Everything is one transaction:
    if any restock fails the sale stays and no stock moves. The sale's cash
    movement, if any, is kept as history.
    """
    def _op():
        begin_write()
        sale = lock_for_update(db.session.query(Sale).filter_by(id=sale_id)).first()
        if sale is None:
            raise NotFoundError(f"Sale {sale_id} not found")

        for item in sale.items:
            if item.product_id is None:
                continue
            stock_service.apply_movement(
                item.product_id,
                "devolucion",
                to_quantity(item.quantity) * to_quantity(item.size or 1),
                note=f"Devolución por eliminación de venta #{sale_id}",
                reference_id=sale_id,
                commit=False,
            )

        db.session.delete(sale)
        db.session.commit()

    run_with_retry(_op)
    current_app.logger.info("Sale %s reversed and deleted", sale_id)


def get_sale(sale_id: int) -> Sale:
    sale = (
        db.session.query(Sale)
        .options(selectinload(Sale.items))
        .filter_by(id=sale_id)
        .first()
    )
    if sale is None:
        raise NotFoundError(f"Sale {sale_id} not found")
    return sale


def list_sales(date_from: datetime | None = None, date_to: datetime | None = None) -> list[Sale]:
    """Newest first, items loaded in one extra query."""
    q = db.session.query(Sale).options(selectinload(Sale.items))
    if date_from is not None:
        q = q.filter(Sale.date >= date_from)
    if date_to is not None:
        q = q.filter(Sale.date <= date_to)
    return q.order_by(Sale.date.desc(), Sale.id.desc()).all()
