"""
Módulo de Pedidos (reabastecimiento almacén -> CEDIS)

- Numeración PED-YYYYMMDD-NNNN
- Flujo abierto -> enviado -> recibido
- Vinculación con la transferencia que surte el pedido
- Faltantes pendientes de orden de compra
"""

from .router import router as replenishment_orders_router
from .service import ReplenishmentOrderService

__all__ = [
    "replenishment_orders_router",
    "ReplenishmentOrderService"
]
