from __future__ import annotations

from ..extensions import db
from ..decimal_utils import to_number
from ..time_utils import to_utc_z


class Supplier(db.Model):
    __tablename__ = "suppliers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(64), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    note = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    payments = db.relationship(
        "SupplierPayment",
        back_populates="supplier",
        cascade="all, delete-orphan",
        lazy=True,
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "email": self.email,
            "note": self.note,
            "created_at": to_utc_z(self.created_at),
        }


class SupplierPayment(db.Model):
    """
    Payment made to a supplier.

    When paid out of the drawer, `cash_movement_id` points at the egreso
    recorded in the open session and that movement's reference_id points back here.
    """
    __tablename__ = "supplier_payments"
    __table_args__ = (
        db.Index("ix_supplier_payments_supplier_date", "supplier_id", "date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    supplier_id = db.Column(
        db.Integer,
        db.ForeignKey("suppliers.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    amount = db.Column(db.Numeric(14, 2), nullable=False)
    payment_method = db.Column(db.String(16), nullable=False)
    date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    note = db.Column(db.Text, nullable=False, default="")

    cash_register_id = db.Column(
        db.Integer,
        db.ForeignKey("cash_registers.id", ondelete="SET NULL"),
        nullable=True,
    )
    cash_movement_id = db.Column(
        db.Integer,
        db.ForeignKey("cash_movements.id", ondelete="SET NULL"),
        nullable=True,
    )

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    supplier = db.relationship("Supplier", back_populates="payments")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "supplier_id": self.supplier_id,
            "amount": to_number(self.amount),
            "payment_method": self.payment_method,
            "date": to_utc_z(self.date),
            "note": self.note or "",
            "cash_register_id": self.cash_register_id,
            "cash_movement_id": self.cash_movement_id,
            "created_at": to_utc_z(self.created_at),
        }
