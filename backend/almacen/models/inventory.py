from __future__ import annotations

from ..extensions import db
from ..decimal_utils import to_number
from ..time_utils import to_utc_z

STOCK_MOVEMENT_TYPES = ("inicial", "reposicion", "venta", "ajuste", "devolucion")


class Product(db.Model):
    """
    Product master data with its current on-hand quantity.

    STOCK: `stock` is a denormalized running total of the StockMovement ledger.
    Only stock_service writes it, always in the same transaction that appends
    the movement, so the scalar and the ledger never drift.

    UNITS: whole units ("unidad") or fractional kilos/litres; stock keeps
    three decimal places either way.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    stock = db.Column(db.Numeric(14, 3), nullable=False, default=0)
    unit = db.Column(db.String(32), nullable=False, default="unidad")
    cost = db.Column(db.Numeric(14, 2), nullable=False, default=0)

    active = db.Column(db.Boolean, nullable=False, default=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    movements = db.relationship(
        "StockMovement",
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="StockMovement.id",
        lazy=True,
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} stock={self.stock}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "stock": to_number(self.stock),
            "unit": self.unit,
            "cost": to_number(self.cost),
            "active": self.active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class StockMovement(db.Model):
    """
    Append-only stock ledger entry.

    `quantity` is the signed quantity that was requested; `new_stock` is
    max(0, previous_stock + quantity), so on oversell the two can disagree.
    `reference_id` points at the sale for venta/devolucion rows. It is not a
    foreign key: reversing a sale deletes the sale but keeps its movements.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_stock_movements_product_created", "product_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(
        db.Integer,
        db.ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    product_name = db.Column(db.String(255), nullable=True)

    type = db.Column(db.String(16), nullable=False, index=True)
    quantity = db.Column(db.Numeric(14, 3), nullable=False)
    previous_stock = db.Column(db.Numeric(14, 3), nullable=False)
    new_stock = db.Column(db.Numeric(14, 3), nullable=False)

    note = db.Column(db.String(255), nullable=False, default="")
    reference_id = db.Column(db.Integer, nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    product = db.relationship("Product", back_populates="movements")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "type": self.type,
            "quantity": to_number(self.quantity),
            "previous_stock": to_number(self.previous_stock),
            "new_stock": to_number(self.new_stock),
            "note": self.note or "",
            "reference_id": self.reference_id,
            "created_at": to_utc_z(self.created_at),
        }
