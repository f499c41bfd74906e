"""
Módulo de Inventario (product stock)

- Consultas por almacén y gabinete
- Alta, uso, vaciado y baja de unidades
- Purga del inventario fuera de CEDIS
"""

from .router import router as product_stock_router
from .service import ProductStockService
from .repository import ProductStockRepository

__all__ = [
    "product_stock_router",
    "ProductStockService",
    "ProductStockRepository"
]
