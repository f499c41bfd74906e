from typing import Dict, List, Optional, Tuple
from sqlalchemy.orm import Session
from sqlalchemy import and_, or_, func
from sqlalchemy.exc import SQLAlchemyError

from inventory_api.shared.database.models import (
    ProductStock, Employee, Warehouse, CabinetWarehouse, ProductStockUsageHistory,
    WarehouseTransferDetail, WarehouseTransfer, KitDetail, Kit,
    WithdrawOrderDetail, WithdrawOrder, InventoryShrinkageEvent
)
from inventory_api.modules.merma.repository import ShrinkageRepository


class ProductStockRepository:

    def __init__(self, db: Session):
        self.db = db
        self.shrinkage = ShrinkageRepository(db)

    # ===== CONSULTAS =====

    def _with_employee(self):
        return self.db.query(ProductStock, Employee).outerjoin(
            Employee, ProductStock.last_used_by == Employee.id
        )

    def get_all_located(self) -> List[Tuple[ProductStock, Optional[Employee]]]:
        """Unidades no eliminadas con almacén o gabinete"""
        return self._with_employee().filter(
            and_(
                ProductStock.is_deleted == False,
                or_(
                    ProductStock.current_warehouse.isnot(None),
                    ProductStock.current_cabinet.isnot(None)
                )
            )
        ).all()

    def get_all_in_cabinets(self) -> List[Tuple[ProductStock, Optional[Employee]]]:
        return self._with_employee().filter(
            and_(
                ProductStock.current_cabinet.isnot(None),
                ProductStock.is_deleted == False
            )
        ).all()

    def get_by_warehouse(self, warehouse_id: str) -> List[Tuple[ProductStock, Optional[Employee]]]:
        return self._with_employee().filter(
            and_(
                ProductStock.current_warehouse == warehouse_id,
                ProductStock.current_cabinet.is_(None),
                ProductStock.is_deleted == False
            )
        ).all()

    def get_by_cabinet(self, cabinet_id: str, in_use: Optional[bool] = None,
                       last_used_by: Optional[str] = None) -> List[Tuple[ProductStock, Optional[Employee]]]:
        conditions = [
            ProductStock.current_cabinet == cabinet_id,
            ProductStock.is_deleted == False,
        ]
        if in_use is not None:
            conditions.append(ProductStock.is_being_used == in_use)
        if last_used_by:
            conditions.append(ProductStock.last_used_by == last_used_by)
        return self._with_employee().filter(and_(*conditions)).all()

    def get_with_employee(self) -> List[Tuple[ProductStock, Optional[Employee]]]:
        return self._with_employee().all()

    def get_deleted_or_empty(self) -> List[ProductStock]:
        return self.db.query(ProductStock).filter(
            or_(ProductStock.is_deleted == True, ProductStock.is_empty == True)
        ).all()

    def get_by_id(self, product_id: str) -> Optional[ProductStock]:
        return self.db.query(ProductStock).filter(ProductStock.id == product_id).first()

    def get_by_ids(self, product_ids: List[str]) -> List[ProductStock]:
        return self.db.query(ProductStock).filter(ProductStock.id.in_(product_ids)).all()

    def get_warehouse(self, warehouse_id: str) -> Optional[Warehouse]:
        return self.db.query(Warehouse).filter(Warehouse.id == warehouse_id).first()

    def get_cabinet(self, cabinet_id: str) -> Optional[CabinetWarehouse]:
        return self.db.query(CabinetWarehouse).filter(CabinetWarehouse.id == cabinet_id).first()

    def get_cabinet_for_warehouse(self, warehouse_id: str) -> Optional[CabinetWarehouse]:
        return self.db.query(CabinetWarehouse).filter(
            CabinetWarehouse.warehouse_id == warehouse_id
        ).first()

    def get_employee_for_user(self, user_id: str) -> Optional[Employee]:
        return self.db.query(Employee).filter(Employee.user_id == user_id).first()

    def resolve_warehouse_id(self, product: ProductStock) -> Optional[str]:
        return self.shrinkage.resolve_warehouse_id(product)

    # ===== ESCRITURA =====

    def create_many(self, values: List[dict], history_factory=None) -> List[ProductStock]:
        """Crear unidades y (opcional) su bitácora en una transacción"""
        try:
            products = [ProductStock(**value) for value in values]
            self.db.add_all(products)
            self.db.flush()

            if history_factory is not None:
                self.db.add_all([history_factory(product) for product in products])

            self.db.commit()
            for product in products:
                self.db.refresh(product)
            return products
        except SQLAlchemyError as e:
            self.db.rollback()
            raise e

    def save(self, product: ProductStock, extra: Optional[list] = None) -> ProductStock:
        """Commit de la unidad modificada junto con registros adicionales"""
        try:
            if extra:
                self.db.add_all(extra)
            self.db.commit()
            self.db.refresh(product)
            return product
        except SQLAlchemyError as e:
            self.db.rollback()
            raise e

    def soft_delete(self, product_id: str) -> Optional[ProductStock]:
        """Marcar eliminada solo si no lo estaba (check-then-write)"""
        rows = self.db.query(ProductStock).filter(
            and_(ProductStock.id == product_id, ProductStock.is_deleted == False)
        ).update({"is_deleted": True, "is_being_used": False}, synchronize_session="fetch")
        if rows == 0:
            return None
        return self.get_by_id(product_id)

    def mark_empty(self, product_ids: List[str]) -> List[ProductStock]:
        self.db.query(ProductStock).filter(ProductStock.id.in_(product_ids)).update(
            {"is_empty": True, "is_being_used": False}, synchronize_session="fetch"
        )
        return self.get_by_ids(product_ids)

    def commit(self):
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise e

    def rollback(self):
        self.db.rollback()

    # ===== PURGA =====

    def get_non_cedis_warehouse_ids(self) -> List[str]:
        return [
            row.id for row in self.db.query(Warehouse.id).filter(Warehouse.is_cedis == False).all()
        ]

    def get_product_ids_in_warehouses(self, warehouse_ids: List[str]) -> List[str]:
        """Unidades ubicadas en los almacenes o en sus gabinetes"""
        cabinet_ids = [
            row.id for row in self.db.query(CabinetWarehouse.id).filter(
                CabinetWarehouse.warehouse_id.in_(warehouse_ids)
            ).all()
        ]

        condition = ProductStock.current_warehouse.in_(warehouse_ids)
        if cabinet_ids:
            condition = or_(condition, ProductStock.current_cabinet.in_(cabinet_ids))

        return [row.id for row in self.db.query(ProductStock.id).filter(condition).all()]

    def purge_products(self, product_ids: List[str]) -> Dict[str, int]:
        """
        Eliminar físicamente unidades con todas sus dependencias y recalcular
        contadores de kits, transferencias y retiros afectados.
        """
        try:
            kit_ids = {
                row.kit_id for row in self.db.query(KitDetail.kit_id).filter(
                    KitDetail.product_id.in_(product_ids)
                ).distinct()
            }
            transfer_ids = {
                row.transfer_id for row in self.db.query(WarehouseTransferDetail.transfer_id).filter(
                    WarehouseTransferDetail.product_stock_id.in_(product_ids)
                ).distinct()
            }
            withdraw_order_ids = {
                row.withdraw_order_id for row in self.db.query(WithdrawOrderDetail.withdraw_order_id).filter(
                    WithdrawOrderDetail.product_id.in_(product_ids)
                ).distinct()
            }

            usage_history_deleted = self.db.query(ProductStockUsageHistory).filter(
                ProductStockUsageHistory.product_stock_id.in_(product_ids)
            ).delete(synchronize_session=False)
            transfer_details_deleted = self.db.query(WarehouseTransferDetail).filter(
                WarehouseTransferDetail.product_stock_id.in_(product_ids)
            ).delete(synchronize_session=False)
            kit_details_deleted = self.db.query(KitDetail).filter(
                KitDetail.product_id.in_(product_ids)
            ).delete(synchronize_session=False)
            withdraw_details_deleted = self.db.query(WithdrawOrderDetail).filter(
                WithdrawOrderDetail.product_id.in_(product_ids)
            ).delete(synchronize_session=False)
            # Los eventos de merma conservan barcode/descripción aunque la unidad desaparezca
            self.db.query(InventoryShrinkageEvent).filter(
                InventoryShrinkageEvent.product_stock_id.in_(product_ids)
            ).update({"product_stock_id": None}, synchronize_session=False)
            product_stock_deleted = self.db.query(ProductStock).filter(
                ProductStock.id.in_(product_ids)
            ).delete(synchronize_session=False)

            for kit_id in kit_ids:
                total = self.db.query(func.count(KitDetail.id)).filter(KitDetail.kit_id == kit_id).scalar()
                self.db.query(Kit).filter(Kit.id == kit_id).update(
                    {"num_products": total or 0}, synchronize_session=False
                )
            for transfer_id in transfer_ids:
                total = self.db.query(func.count(WarehouseTransferDetail.id)).filter(
                    WarehouseTransferDetail.transfer_id == transfer_id
                ).scalar()
                self.db.query(WarehouseTransfer).filter(WarehouseTransfer.id == transfer_id).update(
                    {"total_items": total or 0}, synchronize_session=False
                )
            for order_id in withdraw_order_ids:
                total = self.db.query(func.count(WithdrawOrderDetail.id)).filter(
                    WithdrawOrderDetail.withdraw_order_id == order_id
                ).scalar()
                self.db.query(WithdrawOrder).filter(WithdrawOrder.id == order_id).update(
                    {"num_items": total or 0}, synchronize_session=False
                )

            self.db.commit()
            return {
                "productStockDeleted": product_stock_deleted,
                "usageHistoryDeleted": usage_history_deleted,
                "transferDetailsDeleted": transfer_details_deleted,
                "kitDetailsDeleted": kit_details_deleted,
                "withdrawOrderDetailsDeleted": withdraw_details_deleted,
                "kitsUpdated": len(kit_ids),
                "transfersUpdated": len(transfer_ids),
                "withdrawOrdersUpdated": len(withdraw_order_ids),
            }
        except SQLAlchemyError as e:
            self.db.rollback()
            raise e
