from .inventory import Product, StockMovement, STOCK_MOVEMENT_TYPES
from .sales import Sale, SaleItem, PAYMENT_METHODS
from .registers import CashRegister, CashMovement, CASH_MOVEMENT_TYPES, REGISTER_OPEN, REGISTER_CLOSED
from .suppliers import Supplier, SupplierPayment

__all__ = [
    'Product', 'StockMovement', 'STOCK_MOVEMENT_TYPES',
    'Sale', 'SaleItem', 'PAYMENT_METHODS',
    'CashRegister', 'CashMovement', 'CASH_MOVEMENT_TYPES', 'REGISTER_OPEN', 'REGISTER_CLOSED',
    'Supplier', 'SupplierPayment',
]
