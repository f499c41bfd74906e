import logging
from typing import Any, Dict, Optional
from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from inventory_api.core.auth.schemas import UserResponse
from inventory_api.core.exceptions import api_response
from .repository import WarehouseRepository
from .schemas import WarehouseCreate, WarehouseConfigUpdate

logger = logging.getLogger(__name__)


class WarehouseService:

    def __init__(self, db: Session):
        self.db = db
        self.repository = WarehouseRepository(db)

    def get_all(self) -> Dict[str, Any]:
        warehouses = [w.to_dict() for w in self.repository.get_all()]
        return api_response(
            "Warehouses retrieved successfully" if warehouses else "No warehouses found",
            warehouses
        )

    def create(self, data: WarehouseCreate, current_user: Optional[UserResponse]) -> Dict[str, Any]:
        user_id = current_user.id if current_user else None
        try:
            warehouse = self.repository.create_with_cabinet(data.model_dump(), user_id)
        except IntegrityError as e:
            message = str(e.orig).lower()
            if ("duplicate" in message or "unique" in message) and "code" in message:
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail="Warehouse code already exists - please use a unique code"
                )
            raise

        logger.info(f"Almacén creado: {warehouse.code} ({warehouse.id})")
        return api_response("Warehouse created successfully", warehouse.to_dict())

    def update_config(self, warehouse_id: str, data: WarehouseConfigUpdate,
                      current_user: Optional[UserResponse]) -> Dict[str, Any]:
        warehouse = self.repository.get_by_id(warehouse_id)
        if not warehouse:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Warehouse not found"
            )

        update_data = data.model_dump(exclude_none=True)
        warehouse = self.repository.update(
            warehouse, update_data, current_user.id if current_user else None
        )
        return api_response("Warehouse configuration updated successfully", warehouse.to_dict())

    # ===== GABINETES =====

    def get_all_cabinets(self) -> Dict[str, Any]:
        cabinets = [c.to_dict() for c in self.repository.get_all_cabinets()]
        if not cabinets:
            return api_response("No data found", [], success=False)
        return api_response("Fetching db data", cabinets)

    def get_cabinet_map(self) -> Dict[str, Any]:
        """
        Mapa gabinete -> almacén.

        Los CEDIS no tienen gabinete operativo; se agregan con cabinetId null
        cuando no aparecen en el join.
        """
        entries = [
            {
                "cabinetId": cabinet.id,
                "cabinetName": cabinet.name,
                "warehouseId": warehouse.id,
                "warehouseName": warehouse.name,
            }
            for cabinet, warehouse in self.repository.get_cabinet_warehouse_pairs()
        ]

        mapped_ids = {entry["warehouseId"] for entry in entries}
        for cedis in self.repository.get_cedis_warehouses():
            if cedis.id not in mapped_ids:
                entries.append({
                    "cabinetId": None,
                    "cabinetName": None,
                    "warehouseId": cedis.id,
                    "warehouseName": cedis.name,
                })

        entries.sort(key=lambda entry: entry["warehouseName"])

        if not entries:
            return api_response("No cabinet to warehouse mappings found", [], success=False)
        return api_response("Cabinet to warehouse mapping retrieved", entries)
