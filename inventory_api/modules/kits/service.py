import logging
from typing import Any, Dict, Optional
from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from inventory_api.core.exceptions import api_response
from inventory_api.shared.database.models import Employee, Kit
from .repository import KitRepository
from .schemas import KitCreate, KitUpdate, KitItemStatusUpdate

logger = logging.getLogger(__name__)


def _employee_summary(employee: Optional[Employee], with_warehouse: bool = False) -> Optional[Dict[str, Any]]:
    if employee is None:
        return None
    summary = {"id": employee.id, "name": employee.name, "surname": employee.surname}
    if with_warehouse:
        summary["warehouseId"] = employee.warehouse_id
    return summary


class KitService:

    def __init__(self, db: Session):
        self.db = db
        self.repository = KitRepository(db)

    # ===== CONSULTAS =====

    def get_all(self) -> Dict[str, Any]:
        kits = [kit.to_dict() for kit in self.repository.get_all()]
        return api_response("Kits retrieved successfully" if kits else "No kits found", kits)

    def get_by_employee(self, employee_id: str) -> Dict[str, Any]:
        kits = []
        for kit, employee in self.repository.get_by_employee(employee_id):
            row = kit.to_dict()
            row["employee"] = _employee_summary(employee)
            kits.append(row)

        if kits:
            message = f"Kits for employee {employee_id} retrieved successfully"
        else:
            message = f"No kits found for employee {employee_id}"
        return api_response(message, kits)

    def get_details(self, kit_id: str, warehouse_id: Optional[str] = None) -> Dict[str, Any]:
        row = self.repository.get_with_employee(kit_id, warehouse_id)
        if row is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Kit not found for the specified warehouse" if warehouse_id else "Kit not found"
            )

        kit, employee, warehouse = row
        kit_data = kit.to_dict()
        kit_data["employee"] = _employee_summary(employee, with_warehouse=True)
        kit_data["warehouse"] = {
            "id": warehouse.id,
            "name": warehouse.name,
            "code": warehouse.code,
        } if warehouse else None

        items = []
        for detail, product in self.repository.get_details(kit_id):
            item = detail.to_dict()
            item.update({
                "productBarcode": product.barcode if product else None,
                "productLastUsed": product.last_used if product else None,
                "productNumberOfUses": product.number_of_uses if product else None,
                "productIsBeingUsed": product.is_being_used if product else None,
                "productFirstUsed": product.first_used if product else None,
                "productCurrentWarehouse": product.current_warehouse if product else None,
                "productDescription": product.description if product else None,
            })
            items.append(item)

        returned = sum(1 for item in items if item["isReturned"])
        return api_response(f"Kit details for {kit_id} retrieved successfully", {
            "kit": kit_data,
            "items": items,
            "summary": {
                "totalItems": len(items),
                "returnedItems": returned,
                "activeItems": len(items) - returned,
            },
        })

    # ===== ESCRITURA =====

    def create(self, data: KitCreate) -> Dict[str, Any]:
        """
        Crear kit

        Todas las unidades deben existir, estar disponibles y no repetirse.
        """
        product_ids = [item.product_id for item in data.kit_items]
        if len(set(product_ids)) != len(product_ids):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Duplicate product stock items in kit"
            )

        products = self.repository.get_products(product_ids)
        if len(products) != len(product_ids):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="One or more product stock items not found"
            )

        unavailable = [product for product in products if product.is_deleted or product.is_empty]
        if unavailable:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Products {', '.join(p.id for p in unavailable)} are deleted or empty"
            )

        in_use = [product for product in products if product.is_being_used]
        if in_use:
            barcodes = ", ".join(str(product.barcode) for product in in_use)
            logger.warning(f"Kit rechazado: unidades en uso {[p.id for p in in_use]}")
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Products with barcodes {barcodes} are currently being used"
            )

        try:
            kit, details = self.repository.create_kit(
                data.assigned_employee,
                data.observations,
                [item.model_dump() for item in data.kit_items],
                products,
            )
        except IntegrityError as e:
            if "foreign key" in str(e.orig).lower():
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Invalid reference - employee or product does not exist"
                )
            raise

        logger.info(f"Kit {kit.id} asignado a {kit.assigned_employee} con {kit.num_products} unidad(es)")
        return api_response("Kit created successfully", {
            "kit": kit.to_dict(),
            "items": [detail.to_dict() for detail in details],
        })

    def update(self, data: KitUpdate) -> Dict[str, Any]:
        kit: Optional[Kit] = self.repository.get_kit(data.kit_id)
        if not kit:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Kit not found")

        update_data = data.model_dump(exclude={"kit_id"}, exclude_none=True)
        kit = self.repository.update_kit(kit, update_data)
        return api_response("Kit updated successfully", kit.to_dict())

    def update_item_status(self, data: KitItemStatusUpdate) -> Dict[str, Any]:
        item = self.repository.get_item(data.kit_item_id)
        if not item:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Kit item not found")

        item = self.repository.update_item_status(item, data.is_returned, data.observations)
        return api_response("Kit item status updated successfully", item.to_dict())
