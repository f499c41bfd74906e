"""
Módulo de Órdenes de Retiro

- Retiro de unidades por empleado
- Devolución por orden con cierre automático
"""

from .router import router as withdraw_orders_router
from .service import WithdrawOrderService

__all__ = [
    "withdraw_orders_router",
    "WithdrawOrderService"
]
