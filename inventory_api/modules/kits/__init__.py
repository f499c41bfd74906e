"""
Módulo de Kits

- Asignación de kits de unidades a empleados
- Devolución individual de artículos
"""

from .router import router as kits_router
from .service import KitService

__all__ = [
    "kits_router",
    "KitService"
]
