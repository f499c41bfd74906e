from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from sqlalchemy.orm import Session
from sqlalchemy import and_, func
from sqlalchemy.exc import SQLAlchemyError

from inventory_api.shared.database.models import (
    ReplenishmentOrder, ReplenishmentOrderDetail, Warehouse, WarehouseTransfer
)

ORDER_PREFIX = "PED"


class ReplenishmentOrderRepository:

    def __init__(self, db: Session):
        self.db = db

    # ===== CONSULTAS =====

    def get_by_id(self, order_id: str) -> Optional[ReplenishmentOrder]:
        return self.db.query(ReplenishmentOrder).filter(ReplenishmentOrder.id == order_id).first()

    def get_details(self, order_id: str) -> List[ReplenishmentOrderDetail]:
        return self.db.query(ReplenishmentOrderDetail).filter(
            ReplenishmentOrderDetail.order_id == order_id
        ).order_by(ReplenishmentOrderDetail.barcode).all()

    def list_with_counts(self, status_filter: Optional[str] = None,
                         source_warehouse_id: Optional[str] = None) -> List[Tuple[ReplenishmentOrder, int]]:
        """Pedidos con el número de renglones, más recientes primero"""
        query = self.db.query(
            ReplenishmentOrder, func.count(ReplenishmentOrderDetail.id)
        ).outerjoin(
            ReplenishmentOrderDetail, ReplenishmentOrderDetail.order_id == ReplenishmentOrder.id
        )

        if status_filter == "sent":
            query = query.filter(ReplenishmentOrder.is_sent == True)
        elif status_filter == "received":
            query = query.filter(ReplenishmentOrder.is_received == True)
        elif status_filter == "open":
            query = query.filter(ReplenishmentOrder.is_sent == False)

        if source_warehouse_id:
            query = query.filter(ReplenishmentOrder.source_warehouse_id == source_warehouse_id)

        return query.group_by(ReplenishmentOrder.id).order_by(ReplenishmentOrder.created_at.desc()).all()

    def get_warehouse(self, warehouse_id: str) -> Optional[Warehouse]:
        return self.db.query(Warehouse).filter(Warehouse.id == warehouse_id).first()

    def get_transfer(self, transfer_id: str) -> Optional[WarehouseTransfer]:
        return self.db.query(WarehouseTransfer).filter(WarehouseTransfer.id == transfer_id).first()

    def get_unfulfilled(self) -> List[Tuple[ReplenishmentOrderDetail, ReplenishmentOrder]]:
        """Renglones de pedidos recibidos, sin orden de compra y con envío incompleto"""
        return self.db.query(ReplenishmentOrderDetail, ReplenishmentOrder).join(
            ReplenishmentOrder, ReplenishmentOrder.id == ReplenishmentOrderDetail.order_id
        ).filter(
            and_(
                ReplenishmentOrder.is_received == True,
                ReplenishmentOrderDetail.buy_order_generated == False,
                ReplenishmentOrderDetail.sent_quantity < ReplenishmentOrderDetail.quantity
            )
        ).order_by(ReplenishmentOrderDetail.barcode).all()

    def next_order_number(self, today: Optional[datetime] = None) -> str:
        """PED-YYYYMMDD-NNNN, secuencia por día"""
        prefix = f"{ORDER_PREFIX}-{(today or datetime.utcnow()).strftime('%Y%m%d')}"
        total = self.db.query(func.count(ReplenishmentOrder.id)).filter(
            ReplenishmentOrder.order_number.like(f"{prefix}-%")
        ).scalar()
        return f"{prefix}-{(total or 0) + 1:04d}"

    # ===== ESCRITURA =====

    def create_order(self, values: Dict[str, Any], items: List[dict]) -> ReplenishmentOrder:
        try:
            order = ReplenishmentOrder(order_number=self.next_order_number(), **values)
            self.db.add(order)
            self.db.flush()

            self.db.add_all([
                ReplenishmentOrderDetail(
                    order_id=order.id,
                    barcode=item["barcode"],
                    quantity=item["quantity"],
                    notes=item.get("notes"),
                    sent_quantity=item.get("sent_quantity") or 0,
                    buy_order_generated=bool(item.get("buy_order_generated")),
                )
                for item in items
            ])

            self.db.commit()
            self.db.refresh(order)
            return order
        except SQLAlchemyError as e:
            self.db.rollback()
            raise e

    def update_order(self, order: ReplenishmentOrder, updates: Dict[str, Any],
                     items: Optional[List[dict]] = None) -> ReplenishmentOrder:
        """
        Actualizar encabezado y renglones (por barcode) en una transacción.

        La cantidad pedida no cambia; sent_quantity toma la cantidad pedida
        cuando no se envía explícitamente.
        """
        try:
            for field, value in updates.items():
                setattr(order, field, value)

            for item in items or []:
                item_updates: Dict[str, Any] = {
                    "sent_quantity": item["sent_quantity"]
                    if item.get("sent_quantity") is not None else item["quantity"]
                }
                if item.get("notes") is not None:
                    item_updates["notes"] = item["notes"]
                if item.get("buy_order_generated") is not None:
                    item_updates["buy_order_generated"] = item["buy_order_generated"]

                self.db.query(ReplenishmentOrderDetail).filter(
                    and_(
                        ReplenishmentOrderDetail.order_id == order.id,
                        ReplenishmentOrderDetail.barcode == item["barcode"]
                    )
                ).update(item_updates, synchronize_session="fetch")

            self.db.commit()
            self.db.refresh(order)
            return order
        except SQLAlchemyError as e:
            self.db.rollback()
            raise e

    def mark_buy_order_generated(self, detail_ids: List[str]) -> int:
        try:
            updated = self.db.query(ReplenishmentOrderDetail).filter(
                ReplenishmentOrderDetail.id.in_(detail_ids)
            ).update({"buy_order_generated": True}, synchronize_session="fetch")
            self.db.commit()
            return updated
        except SQLAlchemyError as e:
            self.db.rollback()
            raise e
