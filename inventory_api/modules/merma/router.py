from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import Response
from sqlalchemy.orm import Session

from inventory_api.config.database import get_db
from inventory_api.core.auth.dependencies import get_current_user
from inventory_api.core.auth.schemas import UserResponse
from inventory_api.shared.inventory import ShrinkageReason, ShrinkageSource
from .service import MermaService
from .schemas import Scope, WriteoffCreate

router = APIRouter()


@router.post("/writeoffs", status_code=status.HTTP_201_CREATED)
async def create_writeoff(
    writeoff_data: WriteoffCreate,
    current_user: UserResponse = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Registrar merma manual

    **Reglas:**
    - Solo admin o encargado
    - reason = otro requiere notes
    - consumido marca la unidad como vacía; dañado / otro la elimina
    - Un solo evento por unidad y motivo (409 si ya existe)
    """
    service = MermaService(db)
    return service.create_writeoff(writeoff_data, current_user)


@router.get("/writeoffs/summary")
async def get_writeoff_summary(
    start: str = Query(..., min_length=1),
    end: str = Query(..., min_length=1),
    scope: Scope = Query(Scope.WAREHOUSE),
    warehouse_id: Optional[str] = Query(None, alias="warehouseId"),
    current_user: UserResponse = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Resumen de merma manual por almacén (global) o por motivo (almacén)"""
    service = MermaService(db)
    return service.get_writeoff_summary(current_user, start, end, scope, warehouse_id)


@router.get("/writeoffs/events")
async def get_writeoff_events(
    start: str = Query(..., min_length=1),
    end: str = Query(..., min_length=1),
    source: ShrinkageSource = Query(ShrinkageSource.MANUAL),
    warehouse_id: Optional[str] = Query(None, alias="warehouseId"),
    reason: Optional[ShrinkageReason] = Query(None),
    q: Optional[str] = Query(None, max_length=100),
    limit: int = Query(50, ge=1, le=200),
    cursor: Optional[str] = Query(None),
    current_user: UserResponse = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Eventos de merma paginados por cursor (más recientes primero)"""
    service = MermaService(db)
    return service.get_events(current_user, start, end, source, warehouse_id, reason, q, limit, cursor)


@router.get("/export")
async def export_events(
    start: str = Query(..., min_length=1),
    end: str = Query(..., min_length=1),
    scope: Scope = Query(Scope.WAREHOUSE),
    warehouse_id: Optional[str] = Query(None, alias="warehouseId"),
    source: Optional[ShrinkageSource] = Query(None),
    reason: Optional[ShrinkageReason] = Query(None),
    q: Optional[str] = Query(None, max_length=100),
    current_user: UserResponse = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Exportar eventos de merma en CSV (solo admin)"""
    service = MermaService(db)
    filename, payload = service.export_events(current_user, start, end, scope, warehouse_id, source, reason, q)
    return Response(
        content=payload,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'}
    )


@router.get("/missing-transfers/summary")
async def get_missing_transfers_summary(
    start: str = Query(..., min_length=1),
    end: str = Query(..., min_length=1),
    scope: Scope = Query(Scope.WAREHOUSE),
    warehouse_id: Optional[str] = Query(None, alias="warehouseId"),
    current_user: UserResponse = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Faltantes de transferencias externas completadas"""
    service = MermaService(db)
    return service.get_missing_transfers_summary(current_user, start, end, scope, warehouse_id)
