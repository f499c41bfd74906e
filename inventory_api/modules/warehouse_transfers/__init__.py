"""
Módulo de Transferencias entre Almacenes

- Transferencias externas (CEDIS -> almacén) con recepción por artículo
- Transferencias internas (almacén <-> gabinete)
- Faltantes al completar, registrados como merma
"""

from .router import router as warehouse_transfers_router
from .service import WarehouseTransferService

__all__ = [
    "warehouse_transfers_router",
    "WarehouseTransferService"
]
