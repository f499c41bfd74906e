from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from inventory_api.config.database import get_db
from .service import KitService
from .schemas import KitCreate, KitUpdate, KitItemStatusUpdate

router = APIRouter()


@router.get("/all")
async def get_all_kits(db: Session = Depends(get_db)):
    service = KitService(db)
    return service.get_all()


@router.get("/by-employee")
async def get_kits_by_employee(
    employee_id: str = Query(..., alias="employeeId"),
    db: Session = Depends(get_db)
):
    service = KitService(db)
    return service.get_by_employee(employee_id)


@router.get("/details")
async def get_kit_details(
    kit_id: str = Query(..., alias="kitId"),
    warehouse_id: Optional[str] = Query(None, alias="warehouseId"),
    db: Session = Depends(get_db)
):
    """Kit con empleado, almacén, artículos y resumen de devoluciones"""
    service = KitService(db)
    return service.get_details(kit_id, warehouse_id)


@router.post("/create", status_code=status.HTTP_201_CREATED)
async def create_kit(kit_data: KitCreate, db: Session = Depends(get_db)):
    """
    Crear kit

    **Funcionalidad:**
    - Valida que las unidades existan y no estén en uso
    - Marca las unidades en uso por el empleado asignado
    - Registra la asignación en la bitácora
    """
    service = KitService(db)
    return service.create(kit_data)


@router.post("/update")
async def update_kit(kit_data: KitUpdate, db: Session = Depends(get_db)):
    service = KitService(db)
    return service.update(kit_data)


@router.post("/items/update-status")
async def update_kit_item_status(item_data: KitItemStatusUpdate, db: Session = Depends(get_db)):
    """Devolver (o reasignar) un artículo del kit"""
    service = KitService(db)
    return service.update_item_status(item_data)
