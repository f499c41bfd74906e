from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from inventory_api.config.database import get_db
from inventory_api.core.auth.dependencies import get_optional_user
from inventory_api.core.auth.schemas import UserResponse
from .service import ProductStockService
from .schemas import ProductStockCreate, UsageUpdate, IsKitToggle, ProductIdsRequest

router = APIRouter()

# ===== CONSULTAS =====

@router.get("/all")
async def get_all_product_stock(db: Session = Depends(get_db)):
    """Unidades no eliminadas separadas en almacén y gabinete"""
    service = ProductStockService(db)
    return service.get_all()


@router.get("/by-warehouse")
async def get_product_stock_by_warehouse(
    warehouse_id: str = Query(..., alias="warehouseId"),
    db: Session = Depends(get_db)
):
    """
    Inventario de un almacén

    **Respuesta:**
    - warehouse: unidades en el almacén
    - cabinet: unidades en su gabinete (vacío para CEDIS)
    - cabinetId: id del gabinete o cadena vacía
    """
    service = ProductStockService(db)
    return service.get_by_warehouse(warehouse_id)


@router.get("/by-cabinet")
async def get_product_stock_by_cabinet(
    cabinet_id: str = Query(..., alias="cabinetId"),
    db: Session = Depends(get_db)
):
    """Unidades disponibles (no en uso) de un gabinete"""
    service = ProductStockService(db)
    return service.get_by_cabinet(cabinet_id)


@router.get("/by-cabinet/in-use")
async def get_product_stock_in_use_by_cabinet(
    cabinet_id: str = Query(..., alias="cabinetId"),
    last_used_by: Optional[str] = Query(None, alias="lastUsedBy"),
    db: Session = Depends(get_db)
):
    service = ProductStockService(db)
    return service.get_in_use_by_cabinet(cabinet_id, last_used_by)


@router.get("/with-employee")
async def get_product_stock_with_employee(db: Session = Depends(get_db)):
    service = ProductStockService(db)
    return service.get_with_employee()


@router.get("/deleted-and-empty")
async def get_deleted_and_empty_product_stock(db: Session = Depends(get_db)):
    service = ProductStockService(db)
    return service.get_deleted_or_empty()

# ===== ESCRITURA =====

@router.post("/create", status_code=status.HTTP_201_CREATED)
async def create_product_stock(
    product_data: ProductStockCreate,
    db: Session = Depends(get_db)
):
    """
    Alta de unidades

    **Validaciones:**
    - isBeingUsed o lastUsed requieren lastUsedBy
    - Almacén y empleado deben existir (400 si no)
    """
    service = ProductStockService(db)
    return service.create(product_data)


@router.post("/update-usage")
async def update_product_stock_usage(
    usage_data: UsageUpdate,
    db: Session = Depends(get_db)
):
    """Check-out / check-in de una unidad"""
    service = ProductStockService(db)
    return service.update_usage(usage_data)


@router.post("/update-is-kit")
async def toggle_product_stock_is_kit(
    toggle_data: IsKitToggle,
    db: Session = Depends(get_db)
):
    service = ProductStockService(db)
    return service.toggle_is_kit(toggle_data)


@router.post("/update-is-empty")
async def mark_product_stock_empty(
    request_data: ProductIdsRequest,
    current_user: Optional[UserResponse] = Depends(get_optional_user),
    db: Session = Depends(get_db)
):
    """Marcar unidades como vacías (registra merma consumido)"""
    service = ProductStockService(db)
    return service.mark_empty(request_data, current_user)


@router.delete("/delete")
async def delete_product_stock(
    product_id: str = Query(..., alias="id"),
    current_user: Optional[UserResponse] = Depends(get_optional_user),
    db: Session = Depends(get_db)
):
    """Baja lógica (solo encargado)"""
    service = ProductStockService(db)
    return service.delete(product_id, current_user)


@router.post("/purge-non-cedis")
async def purge_non_cedis_product_stock(
    current_user: Optional[UserResponse] = Depends(get_optional_user),
    db: Session = Depends(get_db)
):
    """Eliminar físicamente el inventario fuera de CEDIS (solo cuenta principal)"""
    service = ProductStockService(db)
    return service.purge_non_cedis(current_user)
