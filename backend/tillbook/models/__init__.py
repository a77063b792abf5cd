from .catalog import Product
from .ledger import StockMove, REASON_PURCHASE, REASON_SALE, REASON_ADJUST, VALID_REASONS
from .sales import Sale, SaleItem
from .settings import ConfigEntry

__all__ = [
    'Product',
    'StockMove', 'REASON_PURCHASE', 'REASON_SALE', 'REASON_ADJUST', 'VALID_REASONS',
    'Sale', 'SaleItem',
    'ConfigEntry',
]
