from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from inventory_api.config.database import get_db
from inventory_api.core.auth.dependencies import get_current_user
from inventory_api.core.auth.schemas import UserResponse
from .service import WarehouseTransferService
from .schemas import WarehouseTransferCreate, TransferStatusUpdate, TransferItemStatusUpdate

router = APIRouter()


@router.get("/all")
async def get_all_transfers(db: Session = Depends(get_db)):
    service = WarehouseTransferService(db)
    return service.get_all()


@router.get("/by-warehouse")
async def get_transfers_by_warehouse(
    warehouse_id: str = Query(..., alias="warehouseId"),
    db: Session = Depends(get_db)
):
    """Transferencias originadas en el almacén"""
    service = WarehouseTransferService(db)
    return service.get_by_warehouse(warehouse_id)


@router.get("/external")
async def get_external_transfers(
    warehouse_id: str = Query(..., alias="warehouseId"),
    db: Session = Depends(get_db)
):
    """Transferencias externas con destino al almacén (más antiguas primero)"""
    service = WarehouseTransferService(db)
    return service.get_external(warehouse_id)


@router.get("/details")
async def get_transfer_details(
    transfer_id: str = Query(..., alias="transferId"),
    db: Session = Depends(get_db)
):
    service = WarehouseTransferService(db)
    return service.get_details(transfer_id)


@router.post("/create", status_code=status.HTTP_201_CREATED)
async def create_transfer(transfer_data: WarehouseTransferCreate, db: Session = Depends(get_db)):
    """
    Crear transferencia

    **Tipos:**
    - external: CEDIS -> almacén, queda pendiente de recepción
    - internal: almacén <-> gabinete, se completa inmediatamente
    """
    service = WarehouseTransferService(db)
    return service.create(transfer_data)


@router.post("/update-status")
async def update_transfer_status(
    status_data: TransferStatusUpdate,
    current_user: UserResponse = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Completar, cancelar o anotar una transferencia

    Al completar una transferencia externa, los artículos no recibidos se
    registran como merma `transfer_missing`.
    """
    service = WarehouseTransferService(db)
    return service.update_status(status_data, current_user)


@router.post("/update-item-status")
async def update_transfer_item_status(
    item_data: TransferItemStatusUpdate,
    current_user: UserResponse = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Recibir un artículo en el almacén destino o actualizar su condición"""
    service = WarehouseTransferService(db)
    return service.update_item_status(item_data, current_user)
