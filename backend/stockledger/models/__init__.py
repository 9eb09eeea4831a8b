from .outlets import Outlet, OutletStock
from .catalog import Product
from .opname import StockOpname, StockOpnameItem, StockAdjustment

__all__ = [
    'Outlet', 'OutletStock',
    'Product',
    'StockOpname', 'StockOpnameItem', 'StockAdjustment',
]
