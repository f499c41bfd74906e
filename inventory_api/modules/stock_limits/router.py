from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.orm import Session

from inventory_api.config.database import get_db
from inventory_api.core.auth.dependencies import get_current_user
from inventory_api.core.auth.schemas import UserResponse
from .service import StockLimitService
from .schemas import StockLimitCreate, StockLimitUpdate

router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_stock_limit(
    limit_data: StockLimitCreate,
    current_user: UserResponse = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Crear límite de stock (solo encargado)

    - quantity: requiere minQuantity ≤ maxQuantity
    - usage: requiere minUsage ≤ maxUsage
    """
    service = StockLimitService(db)
    return service.create(limit_data, current_user)


@router.put("/{warehouse_id}/{barcode}")
async def update_stock_limit(
    limit_data: StockLimitUpdate,
    warehouse_id: str = Path(...),
    barcode: int = Path(..., ge=0),
    current_user: UserResponse = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    service = StockLimitService(db)
    return service.update(warehouse_id, barcode, limit_data, current_user)


@router.get("/all")
async def get_all_stock_limits(db: Session = Depends(get_db)):
    service = StockLimitService(db)
    return service.get_all()


@router.get("/by-warehouse")
async def get_stock_limits_by_warehouse(
    warehouse_id: str = Query(..., alias="warehouseId"),
    db: Session = Depends(get_db)
):
    service = StockLimitService(db)
    return service.get_by_warehouse(warehouse_id)
