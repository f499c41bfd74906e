import logging
from datetime import datetime
from typing import Any, Dict, Optional
from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from inventory_api.core.auth.schemas import UserResponse, UserRole
from inventory_api.core.exceptions import api_response
from inventory_api.shared.database.models import WarehouseTransfer
from .repository import WarehouseTransferRepository
from .schemas import (
    TransferType, WarehouseTransferCreate, TransferStatusUpdate, TransferItemStatusUpdate
)

logger = logging.getLogger(__name__)

DUPLICATE_NUMBER_MESSAGE = "Transfer number already exists - please use a unique transfer number"


def _is_foreign_key_error(error: IntegrityError) -> bool:
    return "foreign key" in str(error.orig).lower()


def _is_unique_error(error: IntegrityError) -> bool:
    message = str(error.orig).lower()
    return "duplicate" in message or "unique" in message


def validate_status_flags(is_completed: Optional[bool], is_pending: Optional[bool],
                          is_cancelled: Optional[bool]) -> Optional[str]:
    """Combinaciones de estado inválidas; None si la combinación es válida"""
    if is_completed is True and is_cancelled is True:
        return "Transfer cannot be both completed and cancelled"
    if is_completed is True and is_pending is True:
        return "Completed transfers cannot be pending"
    return None


def build_status_values(data: TransferStatusUpdate, user_id: str) -> Dict[str, Any]:
    """
    Valores a aplicar sobre la transferencia.

    Completar fija fecha, usuario y quita pending; cancelar quita pending.
    """
    values: Dict[str, Any] = {}

    if data.is_completed is not None:
        values["is_completed"] = data.is_completed
        if data.is_completed:
            values["completed_date"] = datetime.utcnow()
            values["is_pending"] = False
            values["completed_by"] = user_id

    if data.is_pending is not None:
        values["is_pending"] = data.is_pending

    if data.is_cancelled is not None:
        values["is_cancelled"] = data.is_cancelled
        if data.is_cancelled:
            values["is_pending"] = False

    if data.notes is not None:
        values["notes"] = data.notes

    return values


def can_receive_at(user: UserResponse, destination_warehouse_id: str) -> bool:
    """Solo admin o usuarios del almacén destino reciben transferencias externas"""
    if user.role == UserRole.ADMIN.value:
        return True
    return bool(user.warehouse_id) and user.warehouse_id == destination_warehouse_id


class WarehouseTransferService:

    def __init__(self, db: Session):
        self.db = db
        self.repository = WarehouseTransferRepository(db)

    # ===== CONSULTAS =====

    def get_all(self) -> Dict[str, Any]:
        transfers = [t.to_dict() for t in self.repository.get_all()]
        return api_response(
            "Warehouse transfers retrieved successfully" if transfers else "No warehouse transfers found",
            transfers
        )

    def get_by_warehouse(self, warehouse_id: str) -> Dict[str, Any]:
        transfers = [t.to_dict() for t in self.repository.get_by_source(warehouse_id)]
        if transfers:
            message = f"Warehouse transfers for warehouse {warehouse_id} retrieved successfully"
        else:
            message = "No warehouse transfers found"
        return api_response(message, transfers)

    def get_external(self, warehouse_id: str) -> Dict[str, Any]:
        transfers = [t.to_dict() for t in self.repository.get_external_to(warehouse_id)]
        if transfers:
            message = f"External warehouse transfers to warehouse {warehouse_id} retrieved successfully"
        else:
            message = f"No external warehouse transfers found to warehouse {warehouse_id}"
        return api_response(message, transfers)

    def get_details(self, transfer_id: str) -> Dict[str, Any]:
        transfer = self.repository.get_by_id(transfer_id)
        if not transfer:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Warehouse transfer not found"
            )

        details = []
        for detail, product in self.repository.get_details(transfer_id):
            row = detail.to_dict()
            row.update({
                "productBarcode": product.barcode if product else None,
                "productLastUsed": product.last_used if product else None,
                "productNumberOfUses": product.number_of_uses if product else None,
                "productIsBeingUsed": product.is_being_used if product else None,
                "productFirstUsed": product.first_used if product else None,
            })
            details.append(row)

        received = sum(1 for row in details if row["isReceived"])
        return api_response(f"Warehouse transfer details for {transfer_id} retrieved successfully", {
            "transfer": transfer.to_dict(),
            "details": details,
            "summary": {
                "totalItems": len(details),
                "receivedItems": received,
                "pendingItems": len(details) - received,
            },
        })

    # ===== ESCRITURA =====

    def create(self, data: WarehouseTransferCreate) -> Dict[str, Any]:
        """
        Crear transferencia

        - external: queda pendiente hasta que el almacén destino la recibe
        - internal: se completa en el acto y mueve las unidades entre
          almacén y gabinete (destino = origen)
        """
        is_internal = data.transfer_type == TransferType.INTERNAL

        if not is_internal and data.source_warehouse_id == data.destination_warehouse_id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Source and destination warehouses must be different for external transfers"
            )

        if self.repository.number_exists(data.transfer_number):
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=DUPLICATE_NUMBER_MESSAGE)

        destination_id = data.source_warehouse_id if is_internal else data.destination_warehouse_id
        values = {
            "transfer_number": data.transfer_number,
            "transfer_type": data.transfer_type.value,
            "source_warehouse_id": data.source_warehouse_id,
            "destination_warehouse_id": destination_id,
            "initiated_by": data.initiated_by,
            "transfer_reason": data.transfer_reason,
            "notes": data.notes,
            "priority": data.priority.value,
            "cabinet_id": data.cabinet_id if is_internal else None,
            "total_items": len(data.transfer_details),
            "transfer_date": datetime.utcnow(),
            "is_completed": is_internal,
            "is_pending": not is_internal,
            "is_cancelled": False,
        }
        if is_internal:
            values["completed_date"] = datetime.utcnow()

        details = [
            {
                "product_stock_id": detail.product_stock_id,
                "quantity_transferred": detail.quantity_transferred,
                "item_condition": detail.item_condition.value,
                "item_notes": detail.item_notes,
            }
            for detail in data.transfer_details
        ]

        if is_internal:
            direction = "cabinet to warehouse" if data.is_cabinet_to_warehouse else "warehouse to cabinet"
            history_notes = f"Internal transfer - {direction}"
        else:
            history_notes = (
                f"External transfer initiated from {data.source_warehouse_id} "
                f"to {data.destination_warehouse_id}"
            )

        try:
            transfer, records = self.repository.create_transfer(
                values,
                details,
                move_to_cabinet=None if data.is_cabinet_to_warehouse else data.cabinet_id,
                move_units=is_internal,
                history_notes=history_notes,
                new_warehouse_id=destination_id,
            )
        except IntegrityError as e:
            if _is_unique_error(e):
                raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=DUPLICATE_NUMBER_MESSAGE)
            if _is_foreign_key_error(e):
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Invalid reference - warehouse, employee, or product does not exist"
                )
            raise

        logger.info(
            f"Transferencia {transfer.transfer_number} ({transfer.transfer_type}) creada "
            f"con {len(records)} artículo(s)"
        )
        return api_response("Warehouse transfer created successfully", {
            "transfer": transfer.to_dict(),
            "details": [record.to_dict() for record in records],
            "totalDetailsCreated": len(records),
        })

    def update_status(self, data: TransferStatusUpdate, current_user: UserResponse) -> Dict[str, Any]:
        """
        Cambiar el estado de una transferencia

        Una transferencia completada solo acepta cambios en notes. Al completar
        una externa, lo no recibido se da de baja como faltante.
        """
        validation_error = validate_status_flags(data.is_completed, data.is_pending, data.is_cancelled)
        if validation_error:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=validation_error)

        transfer: Optional[WarehouseTransfer] = self.repository.get_by_id(data.transfer_id)
        if not transfer:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Warehouse transfer not found")

        flag_mutation = (
            data.is_completed is not None
            or data.is_pending is not None
            or data.is_cancelled is not None
        )
        if transfer.is_completed and flag_mutation:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Completed transfers are locked. Only notes updates are allowed."
            )

        if (
            transfer.transfer_type == TransferType.EXTERNAL.value
            and data.is_completed is True
            and not can_receive_at(current_user, transfer.destination_warehouse_id)
        ):
            logger.warning(
                f"Usuario {current_user.id} intentó completar la transferencia {transfer.id} "
                f"fuera del almacén destino"
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Only destination warehouse users can complete this external transfer"
            )

        try:
            transfer, events = self.repository.update_status(
                transfer, build_status_values(data, current_user.id), current_user.id
            )
        except IntegrityError as e:
            if _is_foreign_key_error(e):
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Invalid employee ID - employee does not exist"
                )
            raise

        if events:
            logger.info(
                f"Transferencia {transfer.transfer_number} completada con "
                f"{len(events)} faltante(s) registrados como merma"
            )
        return api_response("Warehouse transfer status updated successfully", transfer.to_dict())

    def update_item_status(self, data: TransferItemStatusUpdate, current_user: UserResponse) -> Dict[str, Any]:
        row = self.repository.get_detail_with_transfer(data.transfer_detail_id)
        if row is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Transfer detail not found")

        detail, transfer = row
        if transfer.is_completed:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Transfer has already been completed and is read-only"
            )

        if (
            data.is_received is True
            and transfer.transfer_type == TransferType.EXTERNAL.value
            and not can_receive_at(current_user, transfer.destination_warehouse_id)
        ):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Only destination warehouse users can mark external items as received"
            )

        values: Dict[str, Any] = {}
        if data.is_received is not None:
            values["is_received"] = data.is_received
            if data.is_received:
                values["received_date"] = datetime.utcnow()
                values["received_by"] = current_user.id
        if data.item_condition is not None:
            values["item_condition"] = data.item_condition.value
        if data.item_notes is not None:
            values["item_notes"] = data.item_notes

        try:
            detail = self.repository.update_item_status(detail, transfer, values, current_user.id)
        except IntegrityError as e:
            if _is_foreign_key_error(e):
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Invalid user reference - related record does not exist"
                )
            raise

        return api_response("Transfer item status updated successfully", detail.to_dict())
