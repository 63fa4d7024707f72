from __future__ import annotations

from ..extensions import db
from ..decimal_utils import to_number
from ..time_utils import to_utc_z

PAYMENT_METHODS = ("efectivo", "tarjeta", "transferencia")


class Sale(db.Model):
    """
    Sale header.

    Created together with its items and stock movements in one transaction.
    Never edited; deleting it goes through sales_service.reverse_sale, which
    restocks the products before the row (and its items) disappear.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_date", "date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    grand_total = db.Column(db.Numeric(14, 2), nullable=False)
    payment_method = db.Column(db.String(16), nullable=False)
    date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    # Employee attribution is informational; employees are managed elsewhere
    employee_id = db.Column(db.Integer, nullable=True)
    employee_name = db.Column(db.String(128), nullable=True)

    # Session open when the sale was made, if any
    cash_register_id = db.Column(
        db.Integer,
        db.ForeignKey("cash_registers.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    items = db.relationship(
        "SaleItem",
        back_populates="sale",
        cascade="all, delete-orphan",
        order_by="SaleItem.id",
        lazy=True,
    )

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "grand_total": to_number(self.grand_total),
            "payment_method": self.payment_method,
            "date": to_utc_z(self.date),
            "employee_id": self.employee_id,
            "employee_name": self.employee_name,
            "cash_register_id": self.cash_register_id,
            "created_at": to_utc_z(self.created_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class SaleItem(db.Model):
    """Sale line. Name and price are snapshots taken at sale time."""
    __tablename__ = "sale_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(
        db.Integer,
        db.ForeignKey("sales.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    product_id = db.Column(
        db.Integer,
        db.ForeignKey("products.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    product_name = db.Column(db.String(255), nullable=False)

    quantity = db.Column(db.Numeric(14, 3), nullable=False)
    price = db.Column(db.Numeric(14, 2), nullable=False)
    # Variant multiplier: one unit of this line is `size` base units of stock
    size = db.Column(db.Numeric(14, 3), nullable=False, default=1)
    total = db.Column(db.Numeric(14, 2), nullable=False)

    sale = db.relationship("Sale", back_populates="items")
    product = db.relationship("Product", backref=db.backref("sale_items", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": to_number(self.quantity),
            "price": to_number(self.price),
            "size": to_number(self.size),
            "total": to_number(self.total),
        }
