"""
Módulo de Almacenes

- Alta y configuración de almacenes (bandera CEDIS)
- Gabinetes (uno por almacén) y mapa gabinete -> almacén
"""

from .router import router as warehouses_router, cabinet_router
from .service import WarehouseService
from .repository import WarehouseRepository

__all__ = [
    "warehouses_router",
    "cabinet_router",
    "WarehouseService",
    "WarehouseRepository"
]
