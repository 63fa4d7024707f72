# Overview: Pytest coverage for sale creation and reversal across the stock and cash ledgers.

"""
Sales Service Tests

Covers:
- Totals and line snapshots
- One 'venta' stock movement per line, quantity = -(quantity * size)
- Best-effort cash posting for efectivo sales
- Reversal restocks with 'devolucion' movements and deletes the sale
- Validation failures leave every ledger untouched
"""

import logging
from decimal import Decimal

import pytest

from almacen.models import CashMovement, Product, Sale, SaleItem, StockMovement
from almacen.services import products_service, register_service, sales_service, stock_service
from almacen.services.errors import InvalidQuantityError, NotFoundError
from almacen.validation import ValidationError


def _stock(db_session, product_id):
    return Decimal(str(db_session.get(Product, product_id).stock))


class TestCreateSale:
    """Sale header, lines and stock decrements."""

    def test_grand_total_is_sum_of_lines(self, db_session, product, other_product):
        sale = sales_service.create_sale(
            items=[
                {"product_id": product.id, "quantity": 2, "price": 10},
                {"product_id": other_product.id, "quantity": 1, "price": 5},
            ],
            payment_method="tarjeta",
        )

        assert Decimal(str(sale.grand_total)) == Decimal("25")
        assert len(sale.items) == 2
        assert _stock(db_session, product.id) == Decimal("8")
        assert _stock(db_session, other_product.id) == Decimal("4")

    def test_grand_total_override(self, db_session, product):
        sale = sales_service.create_sale(
            items=[{"product_id": product.id, "quantity": 2, "price": 10}],
            payment_method="tarjeta",
            grand_total=18,
        )

        assert Decimal(str(sale.grand_total)) == Decimal("18")
        assert Decimal(str(sale.items[0].total)) == Decimal("20")

    def test_line_snapshots_product_name(self, db_session, product):
        sale = sales_service.create_sale(
            items=[{"product_id": product.id, "quantity": 1, "price": 10}],
            payment_method="transferencia",
            employee_id=7,
            employee_name="Ana",
        )

        assert sale.items[0].product_name == "Yerba 1kg"
        assert sale.employee_id == 7
        assert sale.employee_name == "Ana"

    def test_venta_movement_uses_size(self, db_session, product):
        sale = sales_service.create_sale(
            items=[{"product_id": product.id, "quantity": 2, "price": 30, "size": 3}],
            payment_method="tarjeta",
        )

        movement = db_session.query(StockMovement).filter_by(type="venta", reference_id=sale.id).one()
        assert Decimal(str(movement.quantity)) == Decimal("-6")
        assert Decimal(str(movement.previous_stock)) == Decimal("10")
        assert Decimal(str(movement.new_stock)) == Decimal("4")
        assert _stock(db_session, product.id) == Decimal("4")

    def test_oversell_clamps_and_warns(self, db_session, product, caplog):
        with caplog.at_level(logging.WARNING):
            sales_service.create_sale(
                items=[{"product_id": product.id, "quantity": 15, "price": 1}],
                payment_method="tarjeta",
            )

        movement = db_session.query(StockMovement).filter_by(type="venta").one()
        assert Decimal(str(movement.quantity)) == Decimal("-15")
        assert Decimal(str(movement.new_stock)) == Decimal("0")
        assert _stock(db_session, product.id) == 0
        assert "oversells" in caplog.text


class TestCreateSaleValidation:
    """Nothing is written when the cart is invalid."""

    def test_empty_cart(self, db_session):
        with pytest.raises(ValidationError):
            sales_service.create_sale(items=[], payment_method="efectivo")

    def test_bad_payment_method(self, db_session, product):
        with pytest.raises(ValidationError):
            sales_service.create_sale(
                items=[{"product_id": product.id, "quantity": 1, "price": 10}],
                payment_method="cheque",
            )

    def test_zero_quantity(self, db_session, product):
        with pytest.raises(InvalidQuantityError):
            sales_service.create_sale(
                items=[{"product_id": product.id, "quantity": 0, "price": 10}],
                payment_method="efectivo",
            )

    def test_missing_product_rolls_back_everything(self, db_session, product):
        with pytest.raises(NotFoundError):
            sales_service.create_sale(
                items=[
                    {"product_id": product.id, "quantity": 1, "price": 10},
                    {"product_id": 99999, "quantity": 1, "price": 10},
                ],
                payment_method="efectivo",
            )

        assert db_session.query(Sale).count() == 0
        assert db_session.query(SaleItem).count() == 0
        assert db_session.query(StockMovement).filter_by(type="venta").count() == 0
        assert _stock(db_session, product.id) == Decimal("10")


class TestCashPosting:
    """efectivo sales land in the open register; others do not."""

    def test_cash_sale_posts_venta_movement(self, db_session, product, open_register):
        sale = sales_service.create_sale(
            items=[{"product_id": product.id, "quantity": 3, "price": 100}],
            payment_method="efectivo",
        )

        movement = db_session.query(CashMovement).filter_by(type="venta").one()
        assert movement.cash_register_id == open_register.id
        assert movement.reference_id == sale.id
        assert movement.category == "venta"
        assert Decimal(str(movement.amount)) == Decimal("300")
        assert sale.cash_register_id == open_register.id
        assert register_service.get_expected(open_register.id) == Decimal("1300")

    def test_card_sale_not_posted(self, db_session, product, open_register):
        sales_service.create_sale(
            items=[{"product_id": product.id, "quantity": 1, "price": 100}],
            payment_method="tarjeta",
        )

        assert db_session.query(CashMovement).count() == 0

    def test_cash_sale_posts_to_its_own_register(self, db_session, product, open_register, monkeypatch):
        """A session swapped between commit and posting does not receive the sale."""
        real_post = register_service.record_sale_movement

        def swap_register_then_post(sale):
            register_service.close_register(open_register.id, 1000)
            register_service.open_register(opening_amount=0)
            return real_post(sale)

        monkeypatch.setattr(register_service, "record_sale_movement", swap_register_then_post)

        sale = sales_service.create_sale(
            items=[{"product_id": product.id, "quantity": 1, "price": 100}],
            payment_method="efectivo",
        )

        assert sale.cash_register_id == open_register.id
        assert db_session.query(CashMovement).filter_by(type="venta").count() == 0

    def test_cash_sale_without_open_register(self, db_session, product):
        sale = sales_service.create_sale(
            items=[{"product_id": product.id, "quantity": 1, "price": 100}],
            payment_method="efectivo",
        )

        assert sale.cash_register_id is None
        assert db_session.query(CashMovement).count() == 0

    def test_module_disabled_skips_posting(self, app, db_session, product, open_register):
        app.config["CASH_REGISTER_ENABLED"] = False

        sale = sales_service.create_sale(
            items=[{"product_id": product.id, "quantity": 1, "price": 100}],
            payment_method="efectivo",
        )

        assert sale.cash_register_id is None
        assert db_session.query(CashMovement).count() == 0

    def test_posting_failure_keeps_sale(self, db_session, product, open_register, monkeypatch, caplog):
        def boom(sale):
            raise RuntimeError("drawer jammed")

        monkeypatch.setattr(register_service, "record_sale_movement", boom)

        with caplog.at_level(logging.ERROR):
            sale = sales_service.create_sale(
                items=[{"product_id": product.id, "quantity": 2, "price": 50}],
                payment_method="efectivo",
            )

        assert db_session.get(Sale, sale.id) is not None
        assert _stock(db_session, product.id) == Decimal("8")
        assert db_session.query(CashMovement).count() == 0
        assert "Failed to post cash movement" in caplog.text


class TestReverseSale:
    """Deleting a sale restocks every line."""

    def test_reversal_restores_stock(self, db_session, product):
        sale = sales_service.create_sale(
            items=[{"product_id": product.id, "quantity": 3, "price": 10}],
            payment_method="tarjeta",
        )
        assert _stock(db_session, product.id) == Decimal("7")

        sales_service.reverse_sale(sale.id)

        assert _stock(db_session, product.id) == Decimal("10")
        devolucion = db_session.query(StockMovement).filter_by(type="devolucion").one()
        assert Decimal(str(devolucion.quantity)) == Decimal("3")
        assert devolucion.reference_id == sale.id
        assert f"#{sale.id}" in devolucion.note
        assert db_session.get(Sale, sale.id) is None
        assert db_session.query(SaleItem).count() == 0

    def test_reversal_uses_size(self, db_session, product):
        sale = sales_service.create_sale(
            items=[{"product_id": product.id, "quantity": 1, "price": 30, "size": 4}],
            payment_method="tarjeta",
        )

        sales_service.reverse_sale(sale.id)

        devolucion = db_session.query(StockMovement).filter_by(type="devolucion").one()
        assert Decimal(str(devolucion.quantity)) == Decimal("4")
        assert _stock(db_session, product.id) == Decimal("10")

    def test_reversal_keeps_sale_movements(self, db_session, product):
        sale = sales_service.create_sale(
            items=[{"product_id": product.id, "quantity": 1, "price": 10}],
            payment_method="tarjeta",
        )

        sales_service.reverse_sale(sale.id)

        refs = db_session.query(StockMovement).filter_by(reference_id=sale.id).all()
        assert sorted(m.type for m in refs) == ["devolucion", "venta"]
        assert _stock(db_session, product.id) == stock_service.get_ledger_balance(product.id)

    def test_reversal_keeps_cash_movement(self, db_session, product, open_register):
        sale = sales_service.create_sale(
            items=[{"product_id": product.id, "quantity": 1, "price": 10}],
            payment_method="efectivo",
        )

        sales_service.reverse_sale(sale.id)

        assert db_session.query(CashMovement).filter_by(reference_id=sale.id).count() == 1

    def test_reversal_skips_deleted_product(self, db_session, product, other_product):
        sale = sales_service.create_sale(
            items=[
                {"product_id": product.id, "quantity": 1, "price": 10},
                {"product_id": other_product.id, "quantity": 2, "price": 5},
            ],
            payment_method="tarjeta",
        )
        products_service.delete_product(other_product.id)

        sales_service.reverse_sale(sale.id)

        assert _stock(db_session, product.id) == Decimal("10")
        assert db_session.query(StockMovement).filter_by(type="devolucion").count() == 1

    def test_failed_restock_rolls_back_whole_reversal(self, db_session, product, other_product, monkeypatch):
        sale = sales_service.create_sale(
            items=[
                {"product_id": product.id, "quantity": 3, "price": 10},
                {"product_id": other_product.id, "quantity": 2, "price": 5},
            ],
            payment_method="tarjeta",
        )
        sale_id = sale.id
        real_apply = stock_service.apply_movement
        calls = []

        def failing_on_second_line(*args, **kwargs):
            calls.append(args)
            if len(calls) == 2:
                raise RuntimeError("restock failed")
            return real_apply(*args, **kwargs)

        monkeypatch.setattr(stock_service, "apply_movement", failing_on_second_line)

        with pytest.raises(RuntimeError):
            sales_service.reverse_sale(sale_id)

        assert len(calls) == 2
        assert db_session.get(Sale, sale_id) is not None
        assert db_session.query(SaleItem).filter_by(sale_id=sale_id).count() == 2
        assert _stock(db_session, product.id) == Decimal("7")
        assert _stock(db_session, other_product.id) == Decimal("3")
        assert db_session.query(StockMovement).filter_by(type="devolucion").count() == 0

    def test_reverse_unknown_sale(self, db_session):
        with pytest.raises(NotFoundError):
            sales_service.reverse_sale(123456)


class TestQueries:
    def test_list_sales_newest_first(self, db_session, product):
        first = sales_service.create_sale(
            items=[{"product_id": product.id, "quantity": 1, "price": 10}],
            payment_method="tarjeta",
        )
        second = sales_service.create_sale(
            items=[{"product_id": product.id, "quantity": 1, "price": 20}],
            payment_method="tarjeta",
        )

        assert [s.id for s in sales_service.list_sales()] == [second.id, first.id]

    def test_list_sales_date_range(self, db_session, product):
        sale = sales_service.create_sale(
            items=[{"product_id": product.id, "quantity": 1, "price": 10}],
            payment_method="tarjeta",
        )
        day = sale.date.replace(hour=0, minute=0, second=0, microsecond=0)

        assert len(sales_service.list_sales(date_from=day)) == 1
        assert sales_service.list_sales(date_to=day.replace(year=day.year - 1)) == []

    def test_get_sale_not_found(self, db_session):
        with pytest.raises(NotFoundError):
            sales_service.get_sale(777)
