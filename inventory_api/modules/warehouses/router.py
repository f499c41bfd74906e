from typing import Optional
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from inventory_api.config.database import get_db
from inventory_api.core.auth.dependencies import get_optional_user, require_roles
from inventory_api.core.auth.schemas import UserResponse
from .service import WarehouseService
from .schemas import WarehouseCreate, WarehouseConfigUpdate

router = APIRouter()
cabinet_router = APIRouter()

# ===== ALMACENES =====

@router.get("/all")
async def get_all_warehouses(db: Session = Depends(get_db)):
    """Listado de almacenes"""
    service = WarehouseService(db)
    return service.get_all()


@router.post("/create", status_code=status.HTTP_201_CREATED)
async def create_warehouse(
    warehouse_data: WarehouseCreate,
    current_user: Optional[UserResponse] = Depends(get_optional_user),
    db: Session = Depends(get_db)
):
    """
    Crear almacén

    **Funcionalidad:**
    - Crea el almacén y su gabinete ("{nombre} Gabinete") en una sola transacción
    - Código duplicado -> 409
    """
    service = WarehouseService(db)
    return service.create(warehouse_data, current_user)


@router.patch("/{warehouse_id}/update-config")
async def update_warehouse_config(
    warehouse_id: str,
    config: WarehouseConfigUpdate,
    current_user: UserResponse = Depends(require_roles(["admin", "encargado"])),
    db: Session = Depends(get_db)
):
    """Actualizar ids externos y bandera CEDIS"""
    service = WarehouseService(db)
    return service.update_config(warehouse_id, config, current_user)

# ===== GABINETES =====

@cabinet_router.get("/all")
async def get_all_cabinets(db: Session = Depends(get_db)):
    service = WarehouseService(db)
    return service.get_all_cabinets()


@cabinet_router.get("/map")
async def get_cabinet_warehouse_map(db: Session = Depends(get_db)):
    """Mapa gabinete -> almacén (incluye CEDIS sin gabinete)"""
    service = WarehouseService(db)
    return service.get_cabinet_map()
