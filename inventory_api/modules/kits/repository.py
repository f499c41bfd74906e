from datetime import date
from typing import List, Optional, Tuple
from sqlalchemy.orm import Session
from sqlalchemy import and_
from sqlalchemy.exc import SQLAlchemyError

from inventory_api.shared.database.models import (
    Kit, KitDetail, ProductStock, Employee, Warehouse
)
from inventory_api.shared.inventory import HistoryAction, MovementType, usage_history


class KitRepository:

    def __init__(self, db: Session):
        self.db = db

    # ===== CONSULTAS =====

    def get_all(self) -> List[Kit]:
        return self.db.query(Kit).order_by(Kit.created_at).all()

    def get_by_employee(self, employee_id: str) -> List[Tuple[Kit, Optional[Employee]]]:
        return self.db.query(Kit, Employee).outerjoin(
            Employee, Kit.assigned_employee == Employee.id
        ).filter(Kit.assigned_employee == employee_id).order_by(Kit.created_at).all()

    def get_with_employee(self, kit_id: str, warehouse_id: Optional[str] = None):
        """Kit con su empleado y el almacén del empleado"""
        query = self.db.query(Kit, Employee, Warehouse).outerjoin(
            Employee, Kit.assigned_employee == Employee.id
        ).outerjoin(
            Warehouse, Employee.warehouse_id == Warehouse.id
        ).filter(Kit.id == kit_id)

        if warehouse_id:
            query = query.filter(Employee.warehouse_id == warehouse_id)
        return query.first()

    def get_details(self, kit_id: str) -> List[Tuple[KitDetail, Optional[ProductStock]]]:
        return self.db.query(KitDetail, ProductStock).outerjoin(
            ProductStock, KitDetail.product_id == ProductStock.id
        ).filter(KitDetail.kit_id == kit_id).order_by(KitDetail.created_at).all()

    def get_products(self, product_ids: List[str]) -> List[ProductStock]:
        return self.db.query(ProductStock).filter(ProductStock.id.in_(product_ids)).all()

    def get_kit(self, kit_id: str) -> Optional[Kit]:
        return self.db.query(Kit).filter(Kit.id == kit_id).first()

    def get_item(self, item_id: str) -> Optional[KitDetail]:
        return self.db.query(KitDetail).filter(KitDetail.id == item_id).first()

    # ===== ESCRITURA =====

    def create_kit(self, assigned_employee: str, observations: Optional[str],
                   items: List[dict], products: List[ProductStock]) -> Tuple[Kit, List[KitDetail]]:
        """Kit + detalles + unidades en uso + bitácora en una transacción"""
        try:
            today = date.today()
            kit = Kit(
                assigned_employee=assigned_employee,
                observations=observations,
                num_products=len(items),
                assigned_date=today,
            )
            self.db.add(kit)
            self.db.flush()

            details = [
                KitDetail(
                    kit_id=kit.id,
                    product_id=item["product_id"],
                    observations=item.get("observations"),
                    is_returned=False,
                )
                for item in items
            ]
            self.db.add_all(details)

            for product in products:
                product.is_being_used = True
                product.last_used = today
                product.last_used_by = assigned_employee
                product.number_of_uses = (product.number_of_uses or 0) + 1
                self.db.add(usage_history(
                    product_stock_id=product.id,
                    warehouse_id=product.current_warehouse,
                    movement_type=MovementType.KIT_ASSIGNMENT,
                    action=HistoryAction.ASSIGN,
                    notes=f"Product assigned to kit {kit.id}",
                    employee_id=assigned_employee,
                    kit_id=kit.id,
                ))

            self.db.commit()
            self.db.refresh(kit)
            for detail in details:
                self.db.refresh(detail)
            return kit, details
        except SQLAlchemyError as e:
            self.db.rollback()
            raise e

    def update_kit(self, kit: Kit, update_data: dict) -> Kit:
        try:
            for field, value in update_data.items():
                setattr(kit, field, value)
            self.db.commit()
            self.db.refresh(kit)
            return kit
        except SQLAlchemyError as e:
            self.db.rollback()
            raise e

    def update_item_status(self, item: KitDetail, is_returned: Optional[bool],
                           observations: Optional[str]) -> KitDetail:
        """
        Actualizar un artículo del kit y su unidad en una transacción.

        Al final recalcula is_complete / is_partial del kit.
        """
        try:
            today = date.today()
            if is_returned is not None:
                item.is_returned = is_returned
                item.returned_date = today if is_returned else None
            if observations is not None:
                item.observations = observations

            product = self.db.query(ProductStock).filter(ProductStock.id == item.product_id).first()
            if product is not None:
                product.is_empty = True
                if is_returned is not None:
                    product.is_being_used = not is_returned
                    product.last_used = today
                    if product.last_used_by:
                        self.db.add(usage_history(
                            product_stock_id=product.id,
                            warehouse_id=product.current_warehouse,
                            movement_type=MovementType.KIT_RETURN,
                            action=HistoryAction.RETURN if is_returned else HistoryAction.ASSIGN,
                            notes=f"Kit item {'returned' if is_returned else 'assigned back'}",
                            employee_id=product.last_used_by,
                            kit_id=item.kit_id,
                        ))

            self.db.flush()
            self._refresh_kit_completion(item.kit_id)

            self.db.commit()
            self.db.refresh(item)
            return item
        except SQLAlchemyError as e:
            self.db.rollback()
            raise e

    def _refresh_kit_completion(self, kit_id: str):
        kit = self.get_kit(kit_id)
        if kit is None:
            return
        total = self.db.query(KitDetail).filter(KitDetail.kit_id == kit_id).count()
        returned = self.db.query(KitDetail).filter(
            and_(KitDetail.kit_id == kit_id, KitDetail.is_returned == True)
        ).count()
        kit.is_complete = total > 0 and returned == total
        kit.is_partial = 0 < returned < total
