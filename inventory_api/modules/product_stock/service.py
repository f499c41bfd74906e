import logging
from typing import Any, Dict, Optional
from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from inventory_api.config.settings import settings
from inventory_api.core.auth.schemas import UserResponse, UserRole
from inventory_api.core.exceptions import api_response
from inventory_api.shared.database.models import Employee, InventoryShrinkageEvent, ProductStock
from inventory_api.shared.inventory import (
    HistoryAction, MovementType, ShrinkageReason, ShrinkageSource,
    build_legacy_shrinkage_note, usage_history
)
from .repository import ProductStockRepository
from .schemas import ProductStockCreate, UsageUpdate, IsKitToggle, ProductIdsRequest

logger = logging.getLogger(__name__)

EMPTY_PURGE_RESULT = {
    "productStockDeleted": 0,
    "usageHistoryDeleted": 0,
    "transferDetailsDeleted": 0,
    "kitDetailsDeleted": 0,
    "withdrawOrderDetailsDeleted": 0,
    "kitsUpdated": 0,
    "transfersUpdated": 0,
    "withdrawOrdersUpdated": 0,
}


def stock_row(product: ProductStock, employee: Optional[Employee]) -> Dict[str, Any]:
    """Unidad con los datos básicos del último empleado que la usó"""
    return {
        "productStock": product.to_dict(),
        "employee": {
            "id": employee.id,
            "name": employee.name,
            "surname": employee.surname,
        } if employee else None,
    }


def _is_foreign_key_error(error: IntegrityError) -> bool:
    return "foreign key" in str(error.orig).lower()


class ProductStockService:

    def __init__(self, db: Session):
        self.db = db
        self.repository = ProductStockRepository(db)

    # ===== CONSULTAS =====

    def get_all(self) -> Dict[str, Any]:
        warehouse_rows = [stock_row(p, e) for p, e in self.repository.get_all_located()]
        cabinet_rows = [stock_row(p, e) for p, e in self.repository.get_all_in_cabinets()]
        return api_response("Fetching db data", {
            "warehouse": warehouse_rows,
            "cabinet": cabinet_rows,
            "cabinetId": "",
        })

    def get_by_warehouse(self, warehouse_id: str) -> Dict[str, Any]:
        warehouse = self.repository.get_warehouse(warehouse_id)
        if not warehouse:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Warehouse not found")

        warehouse_rows = [stock_row(p, e) for p, e in self.repository.get_by_warehouse(warehouse_id)]

        # CEDIS no tiene gabinete
        cabinet = None if warehouse.is_cedis else self.repository.get_cabinet_for_warehouse(warehouse_id)
        cabinet_rows = []
        if cabinet:
            cabinet_rows = [stock_row(p, e) for p, e in self.repository.get_by_cabinet(cabinet.id, in_use=None)]

        if warehouse.is_cedis:
            message = f"Fetching db data for CEDIS warehouse {warehouse_id} (no cabinet)"
        else:
            message = f"Fetching db data for warehouse {warehouse_id}"
        return api_response(message, {
            "warehouse": warehouse_rows,
            "cabinet": cabinet_rows,
            "cabinetId": cabinet.id if cabinet else "",
        })

    def get_by_cabinet(self, cabinet_id: str) -> Dict[str, Any]:
        cabinet = self.repository.get_cabinet(cabinet_id)
        if not cabinet:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Cabinet not found")

        rows = [stock_row(p, e) for p, e in self.repository.get_by_cabinet(cabinet_id, in_use=False)]
        return api_response(f"Product stock for cabinet {cabinet_id} retrieved successfully", {
            "cabinet": rows,
            "cabinetId": cabinet_id,
            "cabinetName": cabinet.name,
            "warehouseId": cabinet.warehouse_id,
            "totalItems": len(rows),
        })

    def get_in_use_by_cabinet(self, cabinet_id: str, last_used_by: Optional[str]) -> Dict[str, Any]:
        cabinet = self.repository.get_cabinet(cabinet_id)
        if not cabinet:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Cabinet not found")

        rows = [
            stock_row(p, e)
            for p, e in self.repository.get_by_cabinet(cabinet_id, in_use=True, last_used_by=last_used_by)
        ]
        return api_response(f"Product stock in use for cabinet {cabinet_id} retrieved successfully", {
            "cabinet": rows,
            "cabinetId": cabinet_id,
            "cabinetName": cabinet.name,
            "warehouseId": cabinet.warehouse_id,
            "totalItems": len(rows),
        })

    def get_with_employee(self) -> Dict[str, Any]:
        rows = [
            {"productStock": p.to_dict(), "employee": e.to_dict() if e else None}
            for p, e in self.repository.get_with_employee()
        ]
        return api_response("Fetching db data", rows)

    def get_deleted_or_empty(self) -> Dict[str, Any]:
        products = [p.to_dict() for p in self.repository.get_deleted_or_empty()]
        if products:
            message = f"Retrieved {len(products)} product stock record(s) that are deleted or empty"
        else:
            message = "No product stock records found that are deleted or empty"
        return api_response(message, products)

    # ===== ALTA Y ACTUALIZACIÓN =====

    def create(self, data: ProductStockCreate) -> Dict[str, Any]:
        if data.is_being_used and not data.last_used_by:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="lastUsedBy is required when product is being used"
            )
        if data.last_used and not data.last_used_by:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="lastUsedBy is required when lastUsed is provided"
            )

        values = data.model_dump(exclude={"quantity"})
        history_factory = None
        if data.last_used_by:
            def history_factory(product: ProductStock):
                return usage_history(
                    product_stock_id=product.id,
                    warehouse_id=data.current_warehouse,
                    movement_type=MovementType.OTHER,
                    action=HistoryAction.CHECKIN,
                    notes="Product stock created and added to inventory",
                    employee_id=data.last_used_by,
                    new_warehouse_id=data.current_warehouse,
                )

        try:
            products = self.repository.create_many([dict(values) for _ in range(data.quantity)], history_factory)
        except IntegrityError as e:
            if _is_foreign_key_error(e):
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Invalid warehouse ID or employee ID - record does not exist"
                )
            raise

        logger.info(f"Alta de {len(products)} unidad(es) del código {data.barcode} en {data.current_warehouse}")
        return api_response(
            f"Product stock created successfully (x{len(products)})",
            [p.to_dict() for p in products]
        )

    def update_usage(self, data: UsageUpdate) -> Dict[str, Any]:
        if data.is_being_used is True and not data.last_used_by:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="lastUsedBy is required when marking product as being used"
            )
        if data.last_used and not data.last_used_by:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="lastUsedBy is required when lastUsed is provided"
            )

        product = self.repository.get_by_id(data.product_stock_id)
        if not product:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product stock not found")

        changed = False
        if data.is_being_used is not None:
            product.is_being_used = data.is_being_used
            changed = True
        if data.last_used_by is not None:
            product.last_used_by = data.last_used_by
            changed = True
        if data.last_used is not None:
            product.last_used = data.last_used
            changed = True
        # firstUsed conserva la fecha original
        if data.first_used is not None and product.first_used is None:
            product.first_used = data.first_used
            changed = True
        if data.increment_uses:
            product.number_of_uses = (product.number_of_uses or 0) + 1
            changed = True

        if not changed:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="At least one usage field must be provided to update"
            )

        history = []
        if data.last_used_by:
            if data.is_being_used is True:
                action = HistoryAction.CHECKOUT
            elif data.is_being_used is False:
                action = HistoryAction.CHECKIN
            else:
                action = HistoryAction.OTHER
            history.append(usage_history(
                product_stock_id=product.id,
                warehouse_id=product.current_warehouse,
                movement_type=MovementType.OTHER,
                action=action,
                notes="Product usage updated - checked out" if data.is_being_used
                else "Product usage updated - checked in",
                employee_id=data.last_used_by,
            ))

        try:
            product = self.repository.save(product, history)
        except IntegrityError as e:
            if _is_foreign_key_error(e):
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Invalid employee ID - employee does not exist"
                )
            raise

        return api_response("Product stock usage updated successfully", product.to_dict())

    def toggle_is_kit(self, data: IsKitToggle) -> Dict[str, Any]:
        product = self.repository.get_by_id(data.product_stock_id)
        if not product:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product stock not found")

        product.is_kit = not product.is_kit
        product = self.repository.save(product)
        return api_response("Product stock isKit flag updated successfully", product.to_dict())

    # ===== BAJAS =====

    def _legacy_event(self, product: ProductStock, reason: ShrinkageReason,
                      action: str, user_id: Optional[str]) -> Optional[InventoryShrinkageEvent]:
        warehouse_id = self.repository.resolve_warehouse_id(product)
        if warehouse_id is None:
            return None
        return InventoryShrinkageEvent(
            source=ShrinkageSource.MANUAL.value,
            reason=reason.value,
            quantity=1,
            notes=build_legacy_shrinkage_note(action),
            warehouse_id=warehouse_id,
            product_stock_id=product.id,
            product_barcode=product.barcode,
            product_description=product.description,
            created_by_user_id=user_id,
        )

    def delete(self, product_id: str, current_user: Optional[UserResponse]) -> Dict[str, Any]:
        """
        Baja lógica de una unidad

        Solo encargado. Registra merma manual (otro) y bitácora si el usuario
        tiene empleado asociado.
        """
        if current_user is None:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
        if current_user.role != UserRole.ENCARGADO.value:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Forbidden - insufficient permissions"
            )

        try:
            product = self.repository.soft_delete(product_id)
            if product is None:
                self.repository.rollback()
                raise HTTPException(
                    status_code=status.HTTP_404_NOT_FOUND,
                    detail="Product stock not found or already deleted"
                )

            event = self._legacy_event(product, ShrinkageReason.OTRO, "delete", current_user.id)
            if event is not None:
                self.repository.shrinkage.add_events_ignoring_conflicts([event])

            employee = self.repository.get_employee_for_user(current_user.id)
            if employee:
                self.db.add(usage_history(
                    product_stock_id=product.id,
                    warehouse_id=product.current_warehouse,
                    movement_type=MovementType.OTHER,
                    action=HistoryAction.CHECKOUT,
                    notes="Product stock marked as deleted",
                    employee_id=employee.id,
                    user_id=current_user.id,
                    previous_warehouse_id=product.current_warehouse,
                ))

            self.repository.commit()
        except HTTPException:
            raise
        except Exception:
            self.repository.rollback()
            raise

        logger.info(f"Unidad {product_id} eliminada por {current_user.id}")
        product = self.repository.get_by_id(product_id)
        return api_response("Product stock marked as deleted successfully", product.to_dict())

    def mark_empty(self, data: ProductIdsRequest, current_user: Optional[UserResponse]) -> Dict[str, Any]:
        product_ids = list(dict.fromkeys(data.product_ids))
        existing = self.repository.get_by_ids(product_ids)
        if not existing:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="No products found with the provided IDs"
            )

        user_id = current_user.id if current_user else None
        try:
            products = self.repository.mark_empty([p.id for p in existing])
            events = [
                event for event in (
                    self._legacy_event(p, ShrinkageReason.CONSUMIDO, "empty", user_id) for p in products
                )
                if event is not None
            ]
            self.repository.shrinkage.add_events_ignoring_conflicts(events)
            self.repository.commit()
        except Exception:
            self.repository.rollback()
            raise

        return api_response(f"Successfully marked {len(products)} product(s) as empty", {
            "updatedCount": len(products),
            "productIds": [p.id for p in products],
        })

    # ===== PURGA =====

    def purge_non_cedis(self, current_user: Optional[UserResponse]) -> Dict[str, Any]:
        """Eliminación física de todo el inventario fuera de CEDIS (solo cuenta principal)"""
        if current_user is None:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")

        main_email = (settings.main_account_email or "").strip().lower()
        if not main_email or current_user.email.strip().lower() != main_email:
            logger.warning(f"Intento de purga rechazado para {current_user.email}")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Forbidden - insufficient permissions"
            )

        warehouse_ids = self.repository.get_non_cedis_warehouse_ids()
        if not warehouse_ids:
            return api_response("No non-CEDIS warehouses found", dict(EMPTY_PURGE_RESULT))

        product_ids = self.repository.get_product_ids_in_warehouses(warehouse_ids)
        if not product_ids:
            return api_response("No non-CEDIS product stock found", dict(EMPTY_PURGE_RESULT))

        result = self.repository.purge_products(product_ids)
        logger.warning(f"Purga de inventario no CEDIS por {current_user.email}: {result}")
        return api_response("Non-CEDIS product stock purged successfully", result)

