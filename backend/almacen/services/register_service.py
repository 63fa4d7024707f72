"""
Cash Register (Caja Diaria) Service

WHY: Track the cash drawer per session: what was in it at opening, every
cash in/out during the day, and how the counted cash compares at closing.

DESIGN PRINCIPLES:
- At most one open session system-wide
- Sessions are immutable once closed
- Movements are append-only; amounts are stored positive, type carries the sign
- Expected balance is always recomputed from the movement ledger while open
  and frozen into the session only at close
"""

from __future__ import annotations

from decimal import Decimal

from flask import current_app
from sqlalchemy import case, func
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import CashRegister, CashMovement, Sale, REGISTER_OPEN, REGISTER_CLOSED
from ..decimal_utils import ZERO, money, to_number
from ..time_utils import utcnow
from ..validation import ValidationError
from .concurrency import begin_write, lock_for_update, run_with_retry
from .errors import (
    InvalidAmountError,
    NotFoundError,
    RegisterAlreadyClosedError,
    RegisterAlreadyOpenError,
    RegisterNotOpenError,
)

INFLOW_TYPES = ("ingreso", "venta")
MANUAL_TYPES = ("ingreso", "egreso")


def _parse_amount(value, field: str = "amount") -> Decimal:
    try:
        return money(value)
    except ValueError:
        raise InvalidAmountError(f"{field} must be a number")


def _get_register(register_id: int, *, lock: bool = False) -> CashRegister:
    query = db.session.query(CashRegister).filter_by(id=register_id)
    if lock:
        query = lock_for_update(query)
    register = query.first()
    if register is None:
        raise NotFoundError(f"Cash register {register_id} not found")
    return register


def is_enabled() -> bool:
    return bool(current_app.config.get("CASH_REGISTER_ENABLED", True))


# =============================================================================
# SESSION LIFECYCLE
# =============================================================================

def get_open_register() -> CashRegister | None:
    """The currently open session, read fresh from the store."""
    return db.session.query(CashRegister).filter_by(status=REGISTER_OPEN).first()


def get_last_closed_register() -> CashRegister | None:
    return (
        db.session.query(CashRegister)
        .filter_by(status=REGISTER_CLOSED)
        .order_by(CashRegister.closed_at.desc(), CashRegister.id.desc())
        .first()
    )


def open_register(opening_amount=None, note: str = "") -> CashRegister:
    """
    Open a new session.

    If opening_amount is omitted the float carries over from the closing
    amount of the most recently closed session (0 if there is none).

    Raises:
        RegisterAlreadyOpenError: another session is open
        InvalidAmountError: negative or non-numeric opening amount
    """
    amount = None
    if opening_amount is not None:
        amount = _parse_amount(opening_amount, "opening_amount")
        if amount < 0:
            raise InvalidAmountError("opening_amount cannot be negative")

    def _op():
        begin_write()
        existing = lock_for_update(db.session.query(CashRegister).filter_by(status=REGISTER_OPEN)).first()
        if existing:
            raise RegisterAlreadyOpenError(
                f"Cash register {existing.id} is already open. Close it before opening a new one."
            )

        starting = amount
        if starting is None:
            previous = get_last_closed_register()
            starting = money(previous.closing_amount) if previous and previous.closing_amount is not None else ZERO

        register = CashRegister(
            status=REGISTER_OPEN,
            opening_amount=starting,
            note=note or "",
            opened_at=utcnow(),
        )
        db.session.add(register)
        try:
            db.session.flush()
        except IntegrityError:
            # Lost the race against a concurrent open; the unique index caught it
            db.session.rollback()
            raise RegisterAlreadyOpenError("A cash register is already open")

        db.session.commit()
        return register

    register = run_with_retry(_op)
    current_app.logger.info("Cash register %s opened with %s", register.id, register.opening_amount)
    return register


def close_register(register_id: int, closing_amount, note: str | None = None) -> CashRegister:
    """
    Close a session and freeze its reconciliation.

    expected_amount is aggregated while holding the register's row lock, so a
    movement posted concurrently either lands before the total is taken or is
    rejected as NotOpen afterwards.

    Raises:
        NotFoundError, RegisterAlreadyClosedError, InvalidAmountError
    """
    closing = _parse_amount(closing_amount, "closing_amount")
    if closing <= 0:
        raise InvalidAmountError("closing_amount must be greater than 0")

    def _op():
        begin_write()
        register = _get_register(register_id, lock=True)
        if register.status == REGISTER_CLOSED:
            raise RegisterAlreadyClosedError(f"Cash register {register_id} is already closed")

        expected = get_expected(register_id)

        register.status = REGISTER_CLOSED
        register.closed_at = utcnow()
        register.closing_amount = closing
        register.expected_amount = expected
        register.difference = closing - expected
        if note:
            register.note = note

        db.session.commit()
        return register

    register = run_with_retry(_op)
    current_app.logger.info(
        "Cash register %s closed: expected=%s counted=%s difference=%s",
        register.id,
        register.expected_amount,
        register.closing_amount,
        register.difference,
    )
    return register


# =============================================================================
# MOVEMENTS
# =============================================================================

def _append_movement(
    register: CashRegister,
    movement_type: str,
    amount: Decimal,
    description: str,
    category: str,
    reference_id: int | None,
) -> CashMovement:
    if register.status != REGISTER_OPEN:
        raise RegisterNotOpenError("Movements cannot be added to a closed cash register")

    movement = CashMovement(
        cash_register_id=register.id,
        type=movement_type,
        amount=abs(amount),
        description=description or "",
        category=category or "otro",
        reference_id=reference_id,
    )
    db.session.add(movement)
    db.session.flush()
    return movement


def record_movement(
    register_id: int,
    movement_type: str,
    amount,
    description: str = "",
    category: str = "otro",
    reference_id: int | None = None,
    *,
    commit: bool = True,
) -> CashMovement:
    """
    Post a manual ingreso/egreso to an open session.

    With commit=False the insert joins the caller's transaction (used by
    supplier payments); otherwise the call owns its transaction and retries.

    Raises:
        InvalidAmountError: amount <= 0
        NotFoundError: unknown register
        RegisterNotOpenError: register is closed
    """
    if movement_type not in MANUAL_TYPES:
        raise ValidationError("type must be ingreso or egreso")

    value = _parse_amount(amount)
    if value <= 0:
        raise InvalidAmountError("amount must be greater than 0")

    if not commit:
        register = _get_register(register_id, lock=True)
        return _append_movement(register, movement_type, value, description, category, reference_id)

    def _op():
        begin_write()
        register = _get_register(register_id, lock=True)
        movement = _append_movement(register, movement_type, value, description, category, reference_id)
        db.session.commit()
        return movement

    return run_with_retry(_op)


def record_sale_movement(sale: Sale) -> CashMovement | None:
    """
    Post a cash sale to the session recorded on the sale.

    Runs in its own transaction after the sale has been committed; the caller
    decides what to do with failures. Nothing is posted when the sale carries
    no session or that session was closed in the meantime.
    """
    sale_id = sale.id
    register_id = sale.cash_register_id
    amount = money(sale.grand_total)

    if register_id is None:
        current_app.logger.info("Cash sale %s has no cash register; cash posting skipped", sale_id)
        return None

    def _op():
        begin_write()
        register = _get_register(register_id, lock=True)
        if register.status != REGISTER_OPEN:
            db.session.rollback()
            return None
        movement = _append_movement(
            register,
            "venta",
            amount,
            f"Venta #{sale_id}",
            "venta",
            sale_id,
        )
        db.session.commit()
        return movement

    movement = run_with_retry(_op)
    if movement is None:
        current_app.logger.warning(
            "Cash register %s closed before sale %s was posted; cash posting skipped", register_id, sale_id
        )
    return movement


def list_movements(register_id: int, *, newest_first: bool = False) -> list[CashMovement]:
    _get_register(register_id)
    order = CashMovement.id.desc() if newest_first else CashMovement.id.asc()
    return db.session.query(CashMovement).filter_by(cash_register_id=register_id).order_by(order).all()


# =============================================================================
# RECONCILIATION
# =============================================================================

def get_totals(register_id: int) -> tuple[Decimal, Decimal]:
    """(total_ingresos, total_egresos) over the full movement list. Ventas count as ingresos."""
    inflow = func.coalesce(
        func.sum(case((CashMovement.type.in_(INFLOW_TYPES), CashMovement.amount), else_=0)), 0
    )
    outflow = func.coalesce(
        func.sum(case((CashMovement.type == "egreso", func.abs(CashMovement.amount)), else_=0)), 0
    )
    row = (
        db.session.query(inflow.label("ingresos"), outflow.label("egresos"))
        .filter(CashMovement.cash_register_id == register_id)
        .one()
    )
    return money(row.ingresos), money(row.egresos)


def get_expected(register_id: int) -> Decimal:
    """opening_amount + sum(ingreso, venta) - sum(egreso), derived from the ledger on every call."""
    register = _get_register(register_id)
    ingresos, egresos = get_totals(register_id)
    return money(register.opening_amount) + ingresos - egresos


def get_register_detail(register_id: int) -> dict:
    """
    Session with its movements and computed totals.

    calculated_expected is live for open sessions; for closed ones it should
    match the frozen expected_amount.
    """
    register = _get_register(register_id)
    movements = list_movements(register_id)
    ingresos, egresos = get_totals(register_id)

    data = register.to_dict()
    data.update({
        "movements": [m.to_dict() for m in movements],
        "total_ingresos": to_number(ingresos),
        "total_egresos": to_number(egresos),
        "calculated_expected": to_number(money(register.opening_amount) + ingresos - egresos),
    })
    return data


def list_registers(status: str | None = None, limit: int | None = None) -> list[CashRegister]:
    """Sessions newest first, optionally filtered by status."""
    q = db.session.query(CashRegister)
    if status:
        q = q.filter(CashRegister.status == status)
    q = q.order_by(CashRegister.opened_at.desc(), CashRegister.id.desc())
    if limit:
        q = q.limit(limit)
    return q.all()
