from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from inventory_api.config.database import get_db
from inventory_api.core.auth.dependencies import get_current_user
from inventory_api.core.auth.schemas import UserResponse
from .service import DashboardService

router = APIRouter()


@router.get("/low-stock")
async def get_low_stock(
    warehouse_id: Optional[str] = Query(None, alias="warehouseId"),
    current_user: UserResponse = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Barcodes por debajo de su mínimo (mayor déficit primero)"""
    service = DashboardService(db)
    return service.get_low_stock(warehouse_id)


@router.get("/summary")
async def get_summary(
    start: str = Query(..., min_length=1),
    end: str = Query(..., min_length=1),
    warehouse_id: Optional[str] = Query(None, alias="warehouseId"),
    current_user: UserResponse = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Resumen del dashboard

    Stock bajo, recepciones, pedidos, kits, uso de unidades y faltantes de
    pedidos recibidos.
    """
    service = DashboardService(db)
    return service.get_summary(warehouse_id, start, end)
