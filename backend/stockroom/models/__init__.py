from .catalog import Category, Supplier, Product
from .ledger import Movement
from .sales import Sale, Return
from .purchasing import PurchaseOrder
from .auth import User, SessionToken

__all__ = [
    'Category', 'Supplier', 'Product',
    'Movement',
    'Sale', 'Return',
    'PurchaseOrder',
    'User', 'SessionToken',
]
