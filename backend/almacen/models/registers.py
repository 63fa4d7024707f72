from __future__ import annotations

from sqlalchemy import text

from ..extensions import db
from ..decimal_utils import to_number
from ..time_utils import to_utc_z

REGISTER_OPEN = "open"
REGISTER_CLOSED = "closed"

CASH_MOVEMENT_TYPES = ("ingreso", "egreso", "venta")


class CashRegister(db.Model):
    """
    Cash register session (caja diaria).

    LIFECYCLE:
    - open: accepting cash movements; expected balance derived on every read
    - closed: counted; expected_amount, closing_amount and difference frozen

    At most one open session exists. The partial unique index below backs the
    check made in register_service.open_register.
    """
    __tablename__ = "cash_registers"
    __table_args__ = (
        db.Index(
            "uq_cash_registers_single_open",
            "status",
            unique=True,
            sqlite_where=text("status = 'open'"),
            postgresql_where=text("status = 'open'"),
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    status = db.Column(db.String(16), nullable=False, default=REGISTER_OPEN, index=True)

    opening_amount = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    closing_amount = db.Column(db.Numeric(14, 2), nullable=True)
    expected_amount = db.Column(db.Numeric(14, 2), nullable=True)
    # closing - expected; negative means cash is missing
    difference = db.Column(db.Numeric(14, 2), nullable=True)

    opened_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    note = db.Column(db.Text, nullable=False, default="")
    version_id = db.Column(db.Integer, nullable=False, default=1)

    movements = db.relationship(
        "CashMovement",
        back_populates="cash_register",
        cascade="all, delete-orphan",
        order_by="CashMovement.id",
        lazy=True,
    )
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_open(self) -> bool:
        return self.status == REGISTER_OPEN

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "status": self.status,
            "opening_amount": to_number(self.opening_amount),
            "closing_amount": to_number(self.closing_amount),
            "expected_amount": to_number(self.expected_amount),
            "difference": to_number(self.difference),
            "opened_at": to_utc_z(self.opened_at),
            "closed_at": to_utc_z(self.closed_at) if self.closed_at else None,
            "note": self.note or "",
            "version_id": self.version_id,
        }


class CashMovement(db.Model):
    """
    Append-only cash ledger entry for one session.

    `amount` is always positive; `type` carries the sign (egreso subtracts).
    `reference_id` links to whatever produced the movement (a sale, a supplier
    payment) and is not a foreign key.
    """
    __tablename__ = "cash_movements"
    __table_args__ = (
        db.Index("ix_cash_movements_register_created", "cash_register_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    cash_register_id = db.Column(
        db.Integer,
        db.ForeignKey("cash_registers.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    type = db.Column(db.String(16), nullable=False, index=True)
    amount = db.Column(db.Numeric(14, 2), nullable=False)
    description = db.Column(db.String(255), nullable=False, default="")
    category = db.Column(db.String(64), nullable=False, default="otro")
    reference_id = db.Column(db.Integer, nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    cash_register = db.relationship("CashRegister", back_populates="movements")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "cash_register_id": self.cash_register_id,
            "type": self.type,
            "amount": to_number(self.amount),
            "description": self.description or "",
            "category": self.category,
            "reference_id": self.reference_id,
            "created_at": to_utc_z(self.created_at),
        }
