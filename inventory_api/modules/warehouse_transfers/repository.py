from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from sqlalchemy.orm import Session
from sqlalchemy import and_
from sqlalchemy.exc import SQLAlchemyError

from inventory_api.shared.database.models import (
    WarehouseTransfer, WarehouseTransferDetail, ProductStock, InventoryShrinkageEvent
)
from inventory_api.shared.inventory import (
    HistoryAction, MovementType, ShrinkageReason, ShrinkageSource, usage_history
)
from inventory_api.modules.merma.repository import ShrinkageRepository


class WarehouseTransferRepository:

    def __init__(self, db: Session):
        self.db = db
        self.shrinkage = ShrinkageRepository(db)

    # ===== CONSULTAS =====

    def get_all(self) -> List[WarehouseTransfer]:
        return self.db.query(WarehouseTransfer).order_by(WarehouseTransfer.created_at.desc()).all()

    def get_by_source(self, warehouse_id: str) -> List[WarehouseTransfer]:
        return self.db.query(WarehouseTransfer).filter(
            WarehouseTransfer.source_warehouse_id == warehouse_id
        ).order_by(WarehouseTransfer.created_at.desc()).all()

    def get_external_to(self, warehouse_id: str) -> List[WarehouseTransfer]:
        return self.db.query(WarehouseTransfer).filter(
            and_(
                WarehouseTransfer.transfer_type == "external",
                WarehouseTransfer.destination_warehouse_id == warehouse_id
            )
        ).order_by(WarehouseTransfer.created_at).all()

    def get_by_id(self, transfer_id: str) -> Optional[WarehouseTransfer]:
        return self.db.query(WarehouseTransfer).filter(WarehouseTransfer.id == transfer_id).first()

    def get_details(self, transfer_id: str) -> List[Tuple[WarehouseTransferDetail, Optional[ProductStock]]]:
        return self.db.query(WarehouseTransferDetail, ProductStock).outerjoin(
            ProductStock, WarehouseTransferDetail.product_stock_id == ProductStock.id
        ).filter(
            WarehouseTransferDetail.transfer_id == transfer_id
        ).order_by(WarehouseTransferDetail.created_at).all()

    def get_detail_with_transfer(self, detail_id: str) -> Optional[Tuple[WarehouseTransferDetail, WarehouseTransfer]]:
        return self.db.query(WarehouseTransferDetail, WarehouseTransfer).join(
            WarehouseTransfer, WarehouseTransfer.id == WarehouseTransferDetail.transfer_id
        ).filter(WarehouseTransferDetail.id == detail_id).first()

    def number_exists(self, transfer_number: str) -> bool:
        return self.db.query(WarehouseTransfer.id).filter(
            WarehouseTransfer.transfer_number == transfer_number
        ).first() is not None

    # ===== ESCRITURA =====

    def create_transfer(self, values: Dict[str, Any], details: List[dict],
                        move_to_cabinet: Optional[str] = None,
                        move_units: bool = False,
                        history_notes: str = "",
                        new_warehouse_id: Optional[str] = None) -> Tuple[WarehouseTransfer, List[WarehouseTransferDetail]]:
        """
        Transferencia + detalles + (interna) movimiento de unidades + bitácora
        en una sola transacción.
        """
        try:
            transfer = WarehouseTransfer(**values)
            self.db.add(transfer)
            self.db.flush()

            records = [
                WarehouseTransferDetail(transfer_id=transfer.id, is_received=False, **detail)
                for detail in details
            ]
            self.db.add_all(records)

            product_ids = [detail["product_stock_id"] for detail in details]
            if move_units and product_ids:
                self.db.query(ProductStock).filter(ProductStock.id.in_(product_ids)).update(
                    {
                        "current_warehouse": transfer.source_warehouse_id,
                        "current_cabinet": move_to_cabinet,
                    },
                    synchronize_session="fetch"
                )

            for product_id in product_ids:
                self.db.add(usage_history(
                    product_stock_id=product_id,
                    warehouse_id=transfer.source_warehouse_id,
                    movement_type=MovementType.TRANSFER,
                    action=HistoryAction.TRANSFER,
                    notes=history_notes,
                    user_id=transfer.initiated_by,
                    warehouse_transfer_id=transfer.id,
                    previous_warehouse_id=transfer.source_warehouse_id,
                    new_warehouse_id=new_warehouse_id,
                ))

            self.db.commit()
            self.db.refresh(transfer)
            for record in records:
                self.db.refresh(record)
            return transfer, records
        except SQLAlchemyError as e:
            self.db.rollback()
            raise e

    def update_status(self, transfer: WarehouseTransfer, update_values: Dict[str, Any],
                      user_id: str) -> Tuple[WarehouseTransfer, List[InventoryShrinkageEvent]]:
        """
        Aplicar el cambio de estado. Si una transferencia externa pasa a
        completada, las unidades no recibidas se registran como faltante.
        """
        try:
            was_completed = transfer.is_completed
            for field, value in update_values.items():
                setattr(transfer, field, value)
            self.db.flush()

            events: List[InventoryShrinkageEvent] = []
            if not was_completed and transfer.is_completed and transfer.transfer_type == "external":
                events = self._register_missing_items(transfer, user_id)

            self.db.commit()
            self.db.refresh(transfer)
            return transfer, events
        except SQLAlchemyError as e:
            self.db.rollback()
            raise e

    def _register_missing_items(self, transfer: WarehouseTransfer, user_id: str) -> List[InventoryShrinkageEvent]:
        missing = self.db.query(WarehouseTransferDetail, ProductStock).join(
            ProductStock, ProductStock.id == WarehouseTransferDetail.product_stock_id
        ).filter(
            and_(
                WarehouseTransferDetail.transfer_id == transfer.id,
                WarehouseTransferDetail.is_received == False
            )
        ).all()

        to_convert = [
            (detail, product) for detail, product in missing
            if not (product.is_deleted or product.is_empty)
        ]
        if not to_convert:
            return []

        self.db.query(ProductStock).filter(
            ProductStock.id.in_([product.id for _, product in to_convert])
        ).update({"is_deleted": True, "is_being_used": False}, synchronize_session="fetch")

        events = [
            InventoryShrinkageEvent(
                source=ShrinkageSource.TRANSFER_MISSING.value,
                reason=ShrinkageReason.OTRO.value,
                quantity=detail.quantity_transferred,
                notes=f"Faltante al completar transferencia {transfer.transfer_number}",
                warehouse_id=transfer.destination_warehouse_id,
                product_stock_id=product.id,
                product_barcode=product.barcode,
                product_description=product.description,
                transfer_id=transfer.id,
                transfer_number=transfer.transfer_number,
                source_warehouse_id=transfer.source_warehouse_id,
                destination_warehouse_id=transfer.destination_warehouse_id,
                created_by_user_id=user_id,
                created_at=datetime.utcnow(),
            )
            for detail, product in to_convert
        ]
        return self.shrinkage.add_events_ignoring_conflicts(events)

    def update_item_status(self, detail: WarehouseTransferDetail, transfer: WarehouseTransfer,
                           update_values: Dict[str, Any], user_id: str) -> WarehouseTransferDetail:
        """Actualizar el detalle y, al recibir, mover la unidad al almacén destino"""
        try:
            for field, value in update_values.items():
                setattr(detail, field, value)

            if update_values.get("is_received") is True:
                product = self.db.query(ProductStock).filter(
                    ProductStock.id == detail.product_stock_id
                ).first()
                if product is not None:
                    previous_warehouse = product.current_warehouse
                    product.current_warehouse = transfer.destination_warehouse_id
                    product.current_cabinet = None
                    self.db.add(usage_history(
                        product_stock_id=product.id,
                        warehouse_id=transfer.destination_warehouse_id,
                        movement_type=MovementType.TRANSFER,
                        action=HistoryAction.CHECKIN,
                        notes="Transfer item received at destination warehouse",
                        user_id=user_id,
                        warehouse_transfer_id=transfer.id,
                        previous_warehouse_id=previous_warehouse,
                        new_warehouse_id=transfer.destination_warehouse_id,
                    ))

            self.db.commit()
            self.db.refresh(detail)
            return detail
        except SQLAlchemyError as e:
            self.db.rollback()
            raise e
