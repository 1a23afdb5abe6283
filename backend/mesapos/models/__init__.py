from .auth import User
from .catalog import Product
from .sales import Sale, SaleItem
from .cash import CashSession
from .tables import TableOrder, TableOrderItem

__all__ = [
    'User',
    'Product',
    'Sale', 'SaleItem',
    'CashSession',
    'TableOrder', 'TableOrderItem',
]
