from datetime import datetime
from typing import Dict, List, Optional, Set, Tuple
from sqlalchemy.orm import Session
from sqlalchemy import and_, or_, func, case, cast, desc, String
from sqlalchemy.exc import SQLAlchemyError

from inventory_api.shared.database.models import (
    InventoryShrinkageEvent, ProductStock, Employee, Warehouse, CabinetWarehouse,
    WarehouseTransfer, WarehouseTransferDetail
)
from inventory_api.shared.inventory import ShrinkageSource


class ShrinkageRepository:

    def __init__(self, db: Session):
        self.db = db

    # ===== ESCRITURA =====

    def find_existing_product_ids(self, product_ids: List[str], source: str, reason: str) -> Set[str]:
        """Unidades que ya tienen un evento con el mismo source/reason"""
        if not product_ids:
            return set()
        rows = self.db.query(InventoryShrinkageEvent.product_stock_id).filter(
            and_(
                InventoryShrinkageEvent.product_stock_id.in_(product_ids),
                InventoryShrinkageEvent.source == source,
                InventoryShrinkageEvent.reason == reason
            )
        ).all()
        return {row.product_stock_id for row in rows}

    def add_events_ignoring_conflicts(self, events: List[InventoryShrinkageEvent]) -> List[InventoryShrinkageEvent]:
        """
        Agregar eventos a la sesión saltando los que violarían la unicidad
        (product_stock_id, source, reason). No hace commit.
        """
        accepted = []
        seen: Set[Tuple[str, str, str]] = set()
        for event in events:
            if event.product_stock_id is None:
                accepted.append(event)
                continue
            key = (event.product_stock_id, event.source, event.reason)
            if key in seen:
                continue
            if self.find_existing_product_ids([event.product_stock_id], event.source, event.reason):
                continue
            seen.add(key)
            accepted.append(event)

        self.db.add_all(accepted)
        self.db.flush()
        return accepted

    def create_manual_writeoff(self, events: List[InventoryShrinkageEvent], product_ids: List[str],
                               mark_empty: bool, history: list) -> List[InventoryShrinkageEvent]:
        """Eventos + cambio de estado de las unidades + bitácora en una transacción"""
        try:
            self.db.add_all(events)
            self.db.flush()

            values = {"is_being_used": False}
            if mark_empty:
                values["is_empty"] = True
            else:
                values["is_deleted"] = True
            self.db.query(ProductStock).filter(ProductStock.id.in_(product_ids)).update(
                values, synchronize_session="fetch"
            )

            self.db.add_all(history)
            self.db.commit()
            for event in events:
                self.db.refresh(event)
            return events
        except SQLAlchemyError as e:
            self.db.rollback()
            raise e

    # ===== LECTURA =====

    def get_products(self, product_ids: List[str]) -> List[ProductStock]:
        return self.db.query(ProductStock).filter(ProductStock.id.in_(product_ids)).all()

    def get_employee_for_user(self, user_id: str) -> Optional[Employee]:
        return self.db.query(Employee).filter(Employee.user_id == user_id).first()

    def get_warehouse(self, warehouse_id: str) -> Optional[Warehouse]:
        return self.db.query(Warehouse).filter(Warehouse.id == warehouse_id).first()

    def resolve_warehouse_id(self, product: ProductStock) -> Optional[str]:
        """Almacén de la unidad (directo o vía gabinete)"""
        if product.current_warehouse:
            return product.current_warehouse
        if product.current_cabinet:
            cabinet = self.db.query(CabinetWarehouse).filter(
                CabinetWarehouse.id == product.current_cabinet
            ).first()
            return cabinet.warehouse_id if cabinet else None
        return None

    def _range_conditions(self, start: datetime, end: datetime) -> list:
        return [
            InventoryShrinkageEvent.created_at >= start,
            InventoryShrinkageEvent.created_at <= end,
        ]

    def sum_by_warehouse_and_reason(self, source: str, start: datetime, end: datetime,
                                    warehouse_id: Optional[str] = None):
        """Totales agrupados por almacén y motivo"""
        total = func.coalesce(func.sum(InventoryShrinkageEvent.quantity), 0)
        conditions = [InventoryShrinkageEvent.source == source] + self._range_conditions(start, end)
        if warehouse_id:
            conditions.append(InventoryShrinkageEvent.warehouse_id == warehouse_id)

        return self.db.query(
            InventoryShrinkageEvent.warehouse_id,
            Warehouse.name.label("warehouse_name"),
            InventoryShrinkageEvent.reason,
            total.label("total")
        ).join(
            Warehouse, Warehouse.id == InventoryShrinkageEvent.warehouse_id
        ).filter(and_(*conditions)).group_by(
            InventoryShrinkageEvent.warehouse_id,
            Warehouse.name,
            InventoryShrinkageEvent.reason
        ).all()

    def top_products_by_reason(self, source: str, start: datetime, end: datetime,
                               warehouse_id: Optional[str]):
        total = func.coalesce(func.sum(InventoryShrinkageEvent.quantity), 0)
        conditions = [InventoryShrinkageEvent.source == source] + self._range_conditions(start, end)
        if warehouse_id:
            conditions.append(InventoryShrinkageEvent.warehouse_id == warehouse_id)

        return self.db.query(
            InventoryShrinkageEvent.reason,
            InventoryShrinkageEvent.product_barcode.label("barcode"),
            func.max(InventoryShrinkageEvent.product_description).label("description"),
            total.label("total")
        ).filter(and_(*conditions)).group_by(
            InventoryShrinkageEvent.reason,
            InventoryShrinkageEvent.product_barcode
        ).order_by(
            InventoryShrinkageEvent.reason,
            desc(total)
        ).all()

    def _search_filter(self, q: str, include_product_id: bool = True):
        pattern = f"%{q}%"
        filters = [
            InventoryShrinkageEvent.product_description.ilike(pattern),
            InventoryShrinkageEvent.transfer_number.ilike(pattern),
            InventoryShrinkageEvent.notes.ilike(pattern),
            cast(InventoryShrinkageEvent.product_barcode, String).ilike(pattern),
            cast(InventoryShrinkageEvent.id, String).ilike(pattern),
        ]
        if include_product_id:
            filters.append(cast(InventoryShrinkageEvent.product_stock_id, String).ilike(pattern))
        return or_(*filters)

    def list_events(self, start: datetime, end: datetime, source: Optional[str] = None,
                    warehouse_id: Optional[str] = None, reason: Optional[str] = None,
                    q: Optional[str] = None, cursor: Optional[Tuple[datetime, str]] = None,
                    limit: Optional[int] = None, include_product_id_search: bool = True):
        """Eventos con nombre de almacén, más recientes primero (keyset sobre created_at, id)"""
        conditions = self._range_conditions(start, end)
        if source:
            conditions.append(InventoryShrinkageEvent.source == source)
        if warehouse_id:
            conditions.append(InventoryShrinkageEvent.warehouse_id == warehouse_id)
        if reason:
            conditions.append(InventoryShrinkageEvent.reason == reason)
        if q:
            conditions.append(self._search_filter(q, include_product_id_search))
        if cursor:
            cursor_created_at, cursor_id = cursor
            conditions.append(
                or_(
                    InventoryShrinkageEvent.created_at < cursor_created_at,
                    and_(
                        InventoryShrinkageEvent.created_at == cursor_created_at,
                        InventoryShrinkageEvent.id < cursor_id
                    )
                )
            )

        query = self.db.query(InventoryShrinkageEvent, Warehouse.name).join(
            Warehouse, Warehouse.id == InventoryShrinkageEvent.warehouse_id
        ).filter(and_(*conditions)).order_by(
            desc(InventoryShrinkageEvent.created_at),
            desc(InventoryShrinkageEvent.id)
        )
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    def sum_missing_by_warehouse(self, start: datetime, end: datetime):
        total = func.coalesce(func.sum(InventoryShrinkageEvent.quantity), 0)
        return self.db.query(
            InventoryShrinkageEvent.warehouse_id,
            Warehouse.name.label("warehouse_name"),
            total.label("total_missing")
        ).join(
            Warehouse, Warehouse.id == InventoryShrinkageEvent.warehouse_id
        ).filter(
            and_(
                InventoryShrinkageEvent.source == ShrinkageSource.TRANSFER_MISSING.value,
                *self._range_conditions(start, end)
            )
        ).group_by(
            InventoryShrinkageEvent.warehouse_id,
            Warehouse.name
        ).order_by(Warehouse.name).all()

    def completed_external_transfers_into(self, warehouse_id: str, start: datetime, end: datetime):
        """Transferencias externas completadas hacia el almacén con enviado/recibido"""
        reference_date = func.coalesce(WarehouseTransfer.completed_date, WarehouseTransfer.transfer_date)
        sent = func.coalesce(func.sum(WarehouseTransferDetail.quantity_transferred), 0)
        received = func.coalesce(
            func.sum(
                case(
                    (WarehouseTransferDetail.is_received == True, WarehouseTransferDetail.quantity_transferred),
                    else_=0
                )
            ),
            0
        )

        return self.db.query(
            WarehouseTransfer.id.label("transfer_id"),
            WarehouseTransfer.transfer_number,
            WarehouseTransfer.completed_date,
            WarehouseTransfer.source_warehouse_id,
            sent.label("sent"),
            received.label("received")
        ).join(
            WarehouseTransferDetail, WarehouseTransfer.id == WarehouseTransferDetail.transfer_id
        ).filter(
            and_(
                WarehouseTransfer.transfer_type == "external",
                WarehouseTransfer.is_completed == True,
                WarehouseTransfer.destination_warehouse_id == warehouse_id,
                reference_date >= start,
                reference_date <= end
            )
        ).group_by(
            WarehouseTransfer.id,
            WarehouseTransfer.transfer_number,
            WarehouseTransfer.completed_date,
            WarehouseTransfer.source_warehouse_id
        ).order_by(desc(WarehouseTransfer.completed_date)).all()

    def sum_missing_by_transfer(self, transfer_ids: List[str], start: datetime, end: datetime) -> Dict[str, int]:
        if not transfer_ids:
            return {}
        rows = self.db.query(
            InventoryShrinkageEvent.transfer_id,
            func.coalesce(func.sum(InventoryShrinkageEvent.quantity), 0).label("missing")
        ).filter(
            and_(
                InventoryShrinkageEvent.source == ShrinkageSource.TRANSFER_MISSING.value,
                InventoryShrinkageEvent.transfer_id.in_(transfer_ids),
                *self._range_conditions(start, end)
            )
        ).group_by(InventoryShrinkageEvent.transfer_id).all()
        return {row.transfer_id: int(row.missing or 0) for row in rows if row.transfer_id}

    def get_warehouse_names(self, warehouse_ids: List[str]) -> Dict[str, str]:
        if not warehouse_ids:
            return {}
        rows = self.db.query(Warehouse.id, Warehouse.name).filter(Warehouse.id.in_(warehouse_ids)).all()
        return {row.id: row.name for row in rows}
