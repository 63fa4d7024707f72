"""
Supplier payments with Caja Diaria integration

WHY: Paying a supplier in cash takes money out of the drawer. When the cash
module is on and a session is open, the payment is mirrored as an egreso in
the same transaction, and both rows point at each other.
"""

from __future__ import annotations

from datetime import datetime

from ..extensions import db
from ..models import Supplier, SupplierPayment, PAYMENT_METHODS
from ..decimal_utils import money
from ..time_utils import utcnow
from ..validation import ValidationError
from . import register_service
from .concurrency import begin_write, run_with_retry
from .errors import InvalidAmountError, NotFoundError

SUPPLIER_PAYMENT_CATEGORY = "pago_proveedor"


def create_supplier(name: str, phone: str | None = None, email: str | None = None, note: str | None = None) -> Supplier:
    if not name or not str(name).strip():
        raise ValidationError("name is required")

    supplier = Supplier(name=str(name).strip(), phone=phone, email=email, note=note)
    db.session.add(supplier)
    db.session.commit()
    return supplier


def get_supplier(supplier_id: int) -> Supplier:
    supplier = db.session.query(Supplier).filter_by(id=supplier_id).first()
    if supplier is None:
        raise NotFoundError(f"Supplier {supplier_id} not found")
    return supplier


def list_payments(supplier_id: int) -> list[SupplierPayment]:
    get_supplier(supplier_id)
    return (
        db.session.query(SupplierPayment)
        .filter_by(supplier_id=supplier_id)
        .order_by(SupplierPayment.date.desc(), SupplierPayment.id.desc())
        .all()
    )


def register_payment(
    supplier_id: int,
    amount,
    payment_method: str,
    date: datetime | None = None,
    note: str = "",
    register_in_caja: bool = True,
) -> SupplierPayment:
    """
    Record a supplier payment.

    With register_in_caja (default) and the cash module enabled, an open
    session receives an egreso for the amount, category 'pago_proveedor',
    whose reference_id is the payment id. Without an open session the payment
    is recorded alone.
    """
    try:
        value = money(amount)
    except ValueError:
        raise InvalidAmountError("amount must be a number")
    if value <= 0:
        raise InvalidAmountError("amount must be greater than 0")
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError(f"payment_method must be one of: {', '.join(PAYMENT_METHODS)}")

    def _op():
        begin_write()
        supplier = get_supplier(supplier_id)

        payment = SupplierPayment(
            supplier_id=supplier.id,
            amount=value,
            payment_method=payment_method,
            date=date or utcnow(),
            note=note or "",
        )
        db.session.add(payment)
        db.session.flush()

        if register_in_caja and register_service.is_enabled():
            open_register = register_service.get_open_register()
            if open_register is not None:
                movement = register_service.record_movement(
                    open_register.id,
                    "egreso",
                    value,
                    description=f"Pago a proveedor: {supplier.name}",
                    category=SUPPLIER_PAYMENT_CATEGORY,
                    reference_id=payment.id,
                    commit=False,
                )
                payment.cash_register_id = open_register.id
                payment.cash_movement_id = movement.id

        db.session.commit()
        return payment

    return run_with_retry(_op)
