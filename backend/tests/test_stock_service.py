# Overview: Pytest coverage for the stock ledger service.

"""
Stock Ledger Tests

Covers:
- 'inicial' movement on product creation
- Type policy (reposicion > 0, ajuste != 0, manual types only)
- Clamping at zero while recording the requested quantity
- Product.stock always equals the replayed ledger
"""

import random
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from almacen.models import Product, StockMovement
from almacen.services import products_service, stock_service
from almacen.services.errors import InvalidQuantityError, NotFoundError


def _stock(db_session, product_id):
    return Decimal(str(db_session.get(Product, product_id).stock))


class TestInitialStock:
    """Product creation seeds the ledger."""

    def test_initial_movement_recorded(self, db_session, product):
        movements = db_session.query(StockMovement).filter_by(product_id=product.id).all()

        assert len(movements) == 1
        assert movements[0].type == "inicial"
        assert Decimal(str(movements[0].quantity)) == Decimal("10")
        assert Decimal(str(movements[0].previous_stock)) == Decimal("0")
        assert Decimal(str(movements[0].new_stock)) == Decimal("10")

    def test_zero_stock_has_no_movement(self, db_session):
        created = products_service.create_product(name="Sal fina", stock=0)

        assert db_session.query(StockMovement).filter_by(product_id=created.id).count() == 0
        assert _stock(db_session, created.id) == 0

    def test_negative_starting_stock_rejected(self, db_session):
        with pytest.raises(InvalidQuantityError):
            products_service.create_product(name="Harina", stock=-1)


class TestManualMovements:
    """reposicion and ajuste through post_manual_movement."""

    def test_reposicion_increments_stock(self, db_session, product):
        movement = stock_service.post_manual_movement(product.id, 5, "reposicion", "Compra")

        assert movement.type == "reposicion"
        assert Decimal(str(movement.previous_stock)) == Decimal("10")
        assert Decimal(str(movement.new_stock)) == Decimal("15")
        assert movement.note == "Compra"
        assert _stock(db_session, product.id) == Decimal("15")

    def test_reposicion_must_be_positive(self, db_session, product):
        with pytest.raises(InvalidQuantityError):
            stock_service.post_manual_movement(product.id, 0, "reposicion")
        with pytest.raises(InvalidQuantityError):
            stock_service.post_manual_movement(product.id, -2, "reposicion")

        assert _stock(db_session, product.id) == Decimal("10")

    def test_ajuste_zero_rejected(self, db_session, product):
        with pytest.raises(InvalidQuantityError):
            stock_service.post_manual_movement(product.id, 0, "ajuste")

    def test_ajuste_negative_allowed(self, db_session, product):
        movement = stock_service.post_manual_movement(product.id, -3, "ajuste", "Rotura")

        assert Decimal(str(movement.quantity)) == Decimal("-3")
        assert _stock(db_session, product.id) == Decimal("7")

    def test_sale_types_not_manual(self, db_session, product):
        with pytest.raises(InvalidQuantityError):
            stock_service.post_manual_movement(product.id, -1, "venta")
        with pytest.raises(InvalidQuantityError):
            stock_service.post_manual_movement(product.id, 1, "devolucion")

    def test_unknown_product(self, db_session):
        with pytest.raises(NotFoundError):
            stock_service.post_manual_movement(99999, 1, "reposicion")

    def test_fractional_quantities(self, db_session):
        cheese = products_service.create_product(name="Queso por kg", stock="2.5", unit="kg")

        stock_service.post_manual_movement(cheese.id, "-0.750", "ajuste")

        assert _stock(db_session, cheese.id) == Decimal("1.75")


class TestClamping:
    """Stock never goes below zero."""

    def test_oversized_ajuste_clamps_to_zero(self, db_session):
        created = products_service.create_product(name="Fideos", stock=5)

        movement = stock_service.post_manual_movement(created.id, -1000, "ajuste")

        assert Decimal(str(movement.quantity)) == Decimal("-1000")
        assert Decimal(str(movement.previous_stock)) == Decimal("5")
        assert Decimal(str(movement.new_stock)) == Decimal("0")
        assert _stock(db_session, created.id) == 0

    def test_venta_policy_requires_negative(self, db_session, product):
        with pytest.raises(InvalidQuantityError):
            stock_service.apply_movement(product.id, "venta", 1)

    def test_unknown_type_rejected(self, db_session, product):
        with pytest.raises(InvalidQuantityError):
            stock_service.apply_movement(product.id, "robo", -1)


class TestConservation:
    """Product.stock equals the clamped replay of its movements."""

    def test_random_sequence_matches_ledger(self, db_session):
        rng = random.Random(20240301)
        created = products_service.create_product(name="Galletitas", stock=20)

        for _ in range(60):
            kind = rng.choice(["reposicion", "ajuste", "venta", "devolucion"])
            if kind == "reposicion":
                qty = rng.randint(1, 10)
            elif kind == "ajuste":
                qty = rng.choice([-1, 1]) * rng.randint(1, 15)
            elif kind == "venta":
                qty = -rng.randint(1, 12)
            else:
                qty = rng.randint(1, 5)
            stock_service.apply_movement(created.id, kind, qty, reference_id=None)

        assert _stock(db_session, created.id) == stock_service.get_ledger_balance(created.id)
        assert _stock(db_session, created.id) >= 0

    def test_each_movement_chains_previous_to_new(self, db_session, product):
        stock_service.post_manual_movement(product.id, 4, "reposicion")
        stock_service.post_manual_movement(product.id, -20, "ajuste")
        stock_service.post_manual_movement(product.id, 2, "reposicion")

        movements = (
            db_session.query(StockMovement)
            .filter_by(product_id=product.id)
            .order_by(StockMovement.id)
            .all()
        )
        for before, after in zip(movements, movements[1:]):
            assert Decimal(str(after.previous_stock)) == Decimal(str(before.new_stock))
        for m in movements:
            expected = max(Decimal("0"), Decimal(str(m.previous_stock)) + Decimal(str(m.quantity)))
            assert Decimal(str(m.new_stock)) == expected


class TestQueries:
    """Listing and filtering movements."""

    def test_list_movements_filters(self, db_session, product, other_product):
        stock_service.post_manual_movement(product.id, 3, "reposicion")
        stock_service.post_manual_movement(other_product.id, -1, "ajuste")

        all_rows = stock_service.list_movements()
        mine = stock_service.list_movements(product_id=product.id)
        adjustments = stock_service.list_movements(movement_type="ajuste")

        assert len(all_rows) == 4
        assert {m.product_id for m in mine} == {product.id}
        assert [m.type for m in mine] == ["reposicion", "inicial"]
        assert len(adjustments) == 1
        assert adjustments[0].product_id == other_product.id

    def test_list_movements_limit(self, db_session, product):
        for _ in range(5):
            stock_service.post_manual_movement(product.id, 1, "reposicion")

        assert len(stock_service.list_movements(product_id=product.id, limit=3)) == 3

    def test_get_product_movements(self, db_session, product):
        stock_service.post_manual_movement(product.id, 2, "reposicion")

        found, movements = stock_service.get_product_movements(product.id)

        assert found.id == product.id
        assert len(movements) == 2

    def test_get_product_movements_not_found(self, db_session):
        with pytest.raises(NotFoundError):
            stock_service.get_product_movements(424242)


class TestProductDeletion:
    """Deleting a product takes its movements with it."""

    def test_delete_cascades_movements(self, db_session, product):
        stock_service.post_manual_movement(product.id, 2, "reposicion")

        products_service.delete_product(product.id)

        assert db_session.get(Product, product.id) is None
        assert db_session.query(StockMovement).filter_by(product_id=product.id).count() == 0

    def test_delete_unknown_product(self, db_session):
        with pytest.raises(NotFoundError):
            products_service.delete_product(31337)


class TestWriteTransaction:
    """Standalone apply_movement calls own a locked, retried transaction."""

    def test_commit_path_takes_write_lock(self, db_session, product, monkeypatch):
        real_begin = stock_service.begin_write
        calls = []

        def counting_begin_write():
            calls.append(1)
            real_begin()

        monkeypatch.setattr(stock_service, "begin_write", counting_begin_write)

        stock_service.apply_movement(product.id, "reposicion", 1)
        assert len(calls) == 1

        stock_service.apply_movement(product.id, "reposicion", 1, commit=False)
        db_session.commit()
        assert len(calls) == 1
        assert _stock(db_session, product.id) == Decimal("12")

    def test_commit_path_retries_locked_database(self, db_session, product, monkeypatch):
        real_begin = stock_service.begin_write
        attempts = []

        def locked_once():
            attempts.append(1)
            if len(attempts) == 1:
                raise OperationalError("BEGIN IMMEDIATE", {}, Exception("database is locked"))
            real_begin()

        monkeypatch.setattr(stock_service, "begin_write", locked_once)

        stock_service.apply_movement(product.id, "reposicion", 4)

        assert len(attempts) == 2
        assert _stock(db_session, product.id) == Decimal("14")
        assert db_session.query(StockMovement).filter_by(type="reposicion").count() == 1
