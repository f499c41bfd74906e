from datetime import datetime
from typing import List, Optional
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from inventory_api.shared.database.models import Warehouse, CabinetWarehouse


class WarehouseRepository:

    def __init__(self, db: Session):
        self.db = db

    def get_all(self) -> List[Warehouse]:
        return self.db.query(Warehouse).order_by(Warehouse.name).all()

    def get_by_id(self, warehouse_id: str) -> Optional[Warehouse]:
        return self.db.query(Warehouse).filter(Warehouse.id == warehouse_id).first()

    def create_with_cabinet(self, warehouse_data: dict, user_id: Optional[str]) -> Warehouse:
        """Crear almacén y su gabinete en la misma transacción"""
        try:
            warehouse = Warehouse(
                **warehouse_data,
                created_by=user_id,
                last_modified_by=user_id
            )
            self.db.add(warehouse)
            self.db.flush()

            self.db.add(CabinetWarehouse(
                name=f"{warehouse.name} Gabinete",
                warehouse_id=warehouse.id
            ))
            self.db.commit()
            self.db.refresh(warehouse)
            return warehouse
        except SQLAlchemyError as e:
            self.db.rollback()
            raise e

    def update(self, warehouse: Warehouse, update_data: dict, user_id: Optional[str]) -> Warehouse:
        try:
            for key, value in update_data.items():
                setattr(warehouse, key, value)
            warehouse.last_modified_by = user_id
            warehouse.updated_at = datetime.utcnow()
            self.db.commit()
            self.db.refresh(warehouse)
            return warehouse
        except SQLAlchemyError as e:
            self.db.rollback()
            raise e

    # ===== GABINETES =====

    def get_all_cabinets(self) -> List[CabinetWarehouse]:
        return self.db.query(CabinetWarehouse).all()

    def get_cabinet_warehouse_pairs(self):
        """Pares (gabinete, almacén) ordenados por nombre"""
        return self.db.query(CabinetWarehouse, Warehouse).join(
            Warehouse, CabinetWarehouse.warehouse_id == Warehouse.id
        ).order_by(Warehouse.name, CabinetWarehouse.name).all()

    def get_cedis_warehouses(self) -> List[Warehouse]:
        return self.db.query(Warehouse).filter(Warehouse.is_cedis == True).all()
