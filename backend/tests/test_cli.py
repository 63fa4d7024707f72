# Overview: Pytest coverage for the flask CLI command groups.

from decimal import Decimal

from almacen.models import CashRegister
from almacen.services import register_service, stock_service


class TestCajaCommands:
    """flask caja ..."""

    def test_open_status_close(self, cli_runner, db_session):
        result = cli_runner.invoke(args=['caja', 'open', '--amount', '1000', '--note', 'CLI'])
        assert result.exit_code == 0, result.output
        assert 'Opened register' in result.output

        result = cli_runner.invoke(args=['caja', 'status'])
        assert result.exit_code == 0
        assert 'Opening:   1000' in result.output

        result = cli_runner.invoke(args=['caja', 'close', '--amount', '990'])
        assert result.exit_code == 0, result.output
        closed = db_session.query(CashRegister).one()
        assert closed.status == 'closed'
        assert Decimal(str(closed.difference)) == Decimal('-10')

    def test_open_twice_fails(self, cli_runner, db_session, open_register):
        result = cli_runner.invoke(args=['caja', 'open'])

        assert result.exit_code != 0
        assert 'already open' in result.output

    def test_close_without_open(self, cli_runner, db_session):
        result = cli_runner.invoke(args=['caja', 'close', '--amount', '10'])

        assert result.exit_code != 0
        assert 'No cash register is open' in result.output

    def test_history(self, cli_runner, db_session, open_register):
        register_service.close_register(open_register.id, 1000)

        result = cli_runner.invoke(args=['caja', 'history', '--limit', '5'])

        assert result.exit_code == 0
        assert 'closed' in result.output


class TestStockCommands:
    def test_movements(self, cli_runner, db_session, product):
        stock_service.post_manual_movement(product.id, 2, 'reposicion', 'Compra')

        result = cli_runner.invoke(args=['stock', 'movements', '--product-id', str(product.id)])

        assert result.exit_code == 0
        assert 'reposicion' in result.output
        assert 'inicial' in result.output

    def test_movements_empty(self, cli_runner, db_session):
        result = cli_runner.invoke(args=['stock', 'movements', '--type', 'venta'])

        assert result.exit_code == 0
        assert 'No stock movements found.' in result.output


class TestSystemCommands:
    def test_init_db_is_idempotent(self, cli_runner, db_session):
        result = cli_runner.invoke(args=['system', 'init-db'])

        assert result.exit_code == 0
        assert 'PASS' in result.output
