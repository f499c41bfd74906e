"""
Módulo de Límites de Stock

- Límites por cantidad (mínimo / máximo de unidades disponibles)
- Límites por uso (mínimo / máximo de usos)
"""

from .router import router as stock_limits_router
from .service import StockLimitService
from .repository import StockLimitRepository

__all__ = [
    "stock_limits_router",
    "StockLimitService",
    "StockLimitRepository"
]
