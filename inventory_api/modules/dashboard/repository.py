from datetime import datetime
from typing import Dict, List, Optional, Tuple
from sqlalchemy.orm import Session
from sqlalchemy import and_, case, func, desc

from inventory_api.shared.database.models import (
    ProductStock, StockLimit, Warehouse, WarehouseTransfer, ReplenishmentOrder,
    ReplenishmentOrderDetail, Kit, KitDetail, Employee
)


class DashboardRepository:
    """Consultas de solo lectura para los agregados del dashboard"""

    def __init__(self, db: Session):
        self.db = db

    # ===== STOCK =====

    def get_quantity_limits(self, warehouse_id: Optional[str] = None) -> List[Tuple[StockLimit, Optional[str]]]:
        query = self.db.query(StockLimit, Warehouse.name).outerjoin(
            Warehouse, Warehouse.id == StockLimit.warehouse_id
        ).filter(StockLimit.limit_type == "quantity")
        if warehouse_id:
            query = query.filter(StockLimit.warehouse_id == warehouse_id)
        return query.all()

    def count_available_by_barcode(self, warehouse_ids: List[str]) -> Dict[Tuple[str, int], int]:
        """Unidades disponibles fuera de gabinete por (almacén, barcode)"""
        if not warehouse_ids:
            return {}
        rows = self.db.query(
            ProductStock.current_warehouse, ProductStock.barcode, func.count(ProductStock.id)
        ).filter(
            and_(
                ProductStock.current_warehouse.in_(warehouse_ids),
                ProductStock.current_cabinet.is_(None),
                ProductStock.is_deleted == False,
                ProductStock.is_empty == False,
                ProductStock.is_being_used == False
            )
        ).group_by(ProductStock.current_warehouse, ProductStock.barcode).all()
        return {(warehouse_id, barcode): total for warehouse_id, barcode, total in rows}

    def get_product_samples(self, barcodes: List[int]) -> Dict[int, Tuple[str, Optional[str]]]:
        """Una unidad de muestra (id, descripción) por barcode"""
        if not barcodes:
            return {}
        rows = self.db.query(
            ProductStock.barcode, func.min(ProductStock.id), func.max(ProductStock.description)
        ).filter(ProductStock.barcode.in_(barcodes)).group_by(ProductStock.barcode).all()
        return {barcode: (product_id, description) for barcode, product_id, description in rows}

    def usage_breakdown(self, warehouse_id: Optional[str]) -> Tuple[int, int]:
        """(en uso, sin uso) de las unidades vigentes"""
        query = self.db.query(
            func.coalesce(func.sum(case((ProductStock.is_being_used == True, 1), else_=0)), 0),
            func.coalesce(func.sum(case(
                (and_(ProductStock.is_being_used == False, ProductStock.is_empty == False), 1),
                else_=0
            )), 0),
        ).filter(ProductStock.is_deleted == False)
        if warehouse_id:
            query = query.filter(ProductStock.current_warehouse == warehouse_id)
        in_use, idle = query.one()
        return int(in_use or 0), int(idle or 0)

    def top_used_barcodes(self, warehouse_id: Optional[str], limit: int = 5) -> List[Tuple[int, Optional[str], int]]:
        total_uses = func.sum(ProductStock.number_of_uses)
        query = self.db.query(
            ProductStock.barcode, func.max(ProductStock.description), total_uses
        ).filter(ProductStock.is_deleted == False)
        if warehouse_id:
            query = query.filter(ProductStock.current_warehouse == warehouse_id)
        return query.group_by(ProductStock.barcode).order_by(
            desc(total_uses), ProductStock.barcode
        ).limit(limit).all()

    # ===== RECEPCIONES =====

    def reception_metrics(self, warehouse_id: Optional[str], start: datetime, end: datetime) -> Tuple[int, int, int]:
        """(pendientes, completadas, artículos) de transferencias no canceladas en el rango"""
        query = self.db.query(
            func.coalesce(func.sum(case((WarehouseTransfer.is_completed == False, 1), else_=0)), 0),
            func.coalesce(func.sum(case((WarehouseTransfer.is_completed == True, 1), else_=0)), 0),
            func.coalesce(func.sum(WarehouseTransfer.total_items), 0),
        ).filter(
            and_(
                WarehouseTransfer.is_cancelled == False,
                WarehouseTransfer.transfer_date >= start,
                WarehouseTransfer.transfer_date <= end
            )
        )
        if warehouse_id:
            query = query.filter(WarehouseTransfer.destination_warehouse_id == warehouse_id)
        pending, completed, total_items = query.one()
        return int(pending or 0), int(completed or 0), int(total_items or 0)

    # ===== PEDIDOS =====

    def get_orders(self, warehouse_id: Optional[str], start: datetime, end: datetime) -> List[ReplenishmentOrder]:
        query = self.db.query(ReplenishmentOrder).filter(
            and_(ReplenishmentOrder.created_at >= start, ReplenishmentOrder.created_at <= end)
        )
        if warehouse_id:
            query = query.filter(ReplenishmentOrder.source_warehouse_id == warehouse_id)
        return query.all()

    def unfulfilled_quantity(self, warehouse_id: Optional[str]) -> int:
        query = self.db.query(
            func.coalesce(func.sum(ReplenishmentOrderDetail.quantity - ReplenishmentOrderDetail.sent_quantity), 0)
        ).join(
            ReplenishmentOrder, ReplenishmentOrder.id == ReplenishmentOrderDetail.order_id
        ).filter(
            and_(
                ReplenishmentOrder.is_received == True,
                ReplenishmentOrderDetail.buy_order_generated == False,
                ReplenishmentOrderDetail.sent_quantity < ReplenishmentOrderDetail.quantity
            )
        )
        if warehouse_id:
            query = query.filter(ReplenishmentOrder.source_warehouse_id == warehouse_id)
        return int(query.scalar() or 0)

    # ===== KITS =====

    def kit_metrics(self, warehouse_id: Optional[str]) -> Tuple[int, int, int]:
        """(kits, artículos activos, artículos devueltos)"""
        kits_query = self.db.query(func.count(Kit.id)).join(Employee, Employee.id == Kit.assigned_employee)
        items_query = self.db.query(
            func.coalesce(func.sum(case((KitDetail.is_returned == False, 1), else_=0)), 0),
            func.coalesce(func.sum(case((KitDetail.is_returned == True, 1), else_=0)), 0),
        ).join(Kit, Kit.id == KitDetail.kit_id).join(Employee, Employee.id == Kit.assigned_employee)

        if warehouse_id:
            kits_query = kits_query.filter(Employee.warehouse_id == warehouse_id)
            items_query = items_query.filter(Employee.warehouse_id == warehouse_id)

        active, returned = items_query.one()
        return int(kits_query.scalar() or 0), int(active or 0), int(returned or 0)
