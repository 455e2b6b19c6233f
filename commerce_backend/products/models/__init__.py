"""
PATH: products/models/__init__.py

Products models export surface.
"""

from .product import Product
from .warehouse import Warehouse
from .stock_movement import StockMovement

__all__ = [
    "Product",
    "Warehouse",
    "StockMovement",
]
