"""
Módulo de Dashboard

- Stock bajo contra límites de cantidad
- Resumen de recepciones, pedidos, kits y uso
"""

from .router import router as dashboard_router
from .service import DashboardService

__all__ = [
    "dashboard_router",
    "DashboardService"
]
