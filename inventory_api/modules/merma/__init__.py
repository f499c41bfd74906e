"""
Módulo de Merma

- Registro de merma manual (consumido, dañado, otro)
- Resúmenes, eventos paginados y exportación CSV
- Faltantes detectados al completar transferencias
"""

from .router import router as merma_router
from .service import MermaService
from .repository import ShrinkageRepository

__all__ = [
    "merma_router",
    "MermaService",
    "ShrinkageRepository"
]
