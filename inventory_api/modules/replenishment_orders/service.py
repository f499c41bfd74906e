import logging
from datetime import datetime
from typing import Any, Dict, List, Optional
from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from inventory_api.core.auth.schemas import UserResponse, UserRole
from inventory_api.core.exceptions import api_response
from inventory_api.shared.database.models import ReplenishmentOrder
from .repository import ReplenishmentOrderRepository
from .schemas import (
    OrderStatusFilter, ReplenishmentOrderCreate, ReplenishmentOrderItem,
    ReplenishmentOrderUpdate, LinkTransferRequest, MarkBuyOrderRequest
)

logger = logging.getLogger(__name__)


def _normalize_notes(notes: Optional[str]) -> Optional[str]:
    trimmed = notes.strip() if notes else None
    return trimmed or None


def _ensure_unique_items(items: List[ReplenishmentOrderItem]):
    seen = set()
    for item in items:
        if item.barcode in seen:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Duplicate barcode {item.barcode} detected"
            )
        seen.add(item.barcode)


def _summary_row(order: ReplenishmentOrder, items_count: int) -> Dict[str, Any]:
    row = order.to_dict()
    row["itemsCount"] = items_count
    row["hasRelatedTransfer"] = order.warehouse_transfer_id is not None
    return row


class ReplenishmentOrderService:

    def __init__(self, db: Session):
        self.db = db
        self.repository = ReplenishmentOrderRepository(db)

    def _full_order(self, order_id: str) -> Dict[str, Any]:
        order = self.repository.get_by_id(order_id)
        if not order:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Replenishment order not found")

        details = [
            detail.to_dict(exclude={"order_id", "created_at", "updated_at"})
            for detail in self.repository.get_details(order_id)
        ]
        row = _summary_row(order, len(details))
        row["details"] = details
        return row

    def _assert_warehouse(self, warehouse_id: str, cedis: bool = False):
        warehouse = self.repository.get_warehouse(warehouse_id)
        if warehouse is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"{'CEDIS' if cedis else 'Source'} warehouse not found"
            )
        if cedis and not warehouse.is_cedis:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Destination warehouse must be flagged as CEDIS"
            )

    # ===== CONSULTAS =====

    def list_orders(self, status_filter: Optional[OrderStatusFilter]) -> Dict[str, Any]:
        rows = self.repository.list_with_counts(status_filter.value if status_filter else None)
        return api_response(
            "Replenishment orders retrieved successfully",
            [_summary_row(order, count) for order, count in rows]
        )

    def list_by_warehouse(self, warehouse_id: str) -> Dict[str, Any]:
        rows = self.repository.list_with_counts(source_warehouse_id=warehouse_id)
        return api_response(
            "Warehouse replenishment orders retrieved successfully",
            [_summary_row(order, count) for order, count in rows]
        )

    def get_order(self, order_id: str) -> Dict[str, Any]:
        return api_response("Replenishment order retrieved successfully", self._full_order(order_id))

    def get_unfulfilled_products(self) -> Dict[str, Any]:
        """Faltantes de pedidos recibidos pendientes de orden de compra"""
        products = [
            {
                "id": detail.id,
                "barcode": detail.barcode,
                "quantity": detail.quantity,
                "sentQuantity": detail.sent_quantity,
                "unfulfilledQuantity": detail.quantity - detail.sent_quantity,
                "replenishmentOrderId": order.id,
                "orderNumber": order.order_number,
                "sourceWarehouseId": order.source_warehouse_id,
                "cedisWarehouseId": order.cedis_warehouse_id,
                "notes": detail.notes,
            }
            for detail, order in self.repository.get_unfulfilled()
        ]
        return api_response("Unfulfilled products retrieved successfully", products)

    # ===== ESCRITURA =====

    def create(self, data: ReplenishmentOrderCreate) -> Dict[str, Any]:
        """
        Crear pedido

        El número se genera como PED-YYYYMMDD-NNNN. El destino debe ser CEDIS.
        """
        _ensure_unique_items(data.items)
        self._assert_warehouse(data.source_warehouse_id)
        self._assert_warehouse(data.cedis_warehouse_id, cedis=True)

        order = self.repository.create_order(
            {
                "source_warehouse_id": data.source_warehouse_id,
                "cedis_warehouse_id": data.cedis_warehouse_id,
                "notes": _normalize_notes(data.notes),
                "is_sent": False,
                "is_received": False,
            },
            [item.model_dump() for item in data.items],
        )

        logger.info(f"Pedido {order.order_number} creado con {len(data.items)} renglón(es)")
        return api_response("Replenishment order created successfully", self._full_order(order.id))

    def update(self, order_id: str, data: ReplenishmentOrderUpdate, current_user: UserResponse) -> Dict[str, Any]:
        """
        Actualizar pedido

        - Marcar recibido exige que esté (o quede) enviado
        - Des-enviar limpia también la recepción
        - items actualiza renglones existentes por barcode
        """
        if data.items:
            _ensure_unique_items(data.items)

        order = self.repository.get_by_id(order_id)
        if not order:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Replenishment order not found")

        now = datetime.utcnow()
        updates: Dict[str, Any] = {}

        if data.notes is not None:
            updates["notes"] = _normalize_notes(data.notes)

        will_be_sent = data.is_sent if data.is_sent is not None else order.is_sent
        if data.is_received is True and not will_be_sent:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Order must be sent before it can be marked as received"
            )

        if data.is_sent is not None and data.is_sent != order.is_sent:
            updates["is_sent"] = data.is_sent
            if data.is_sent:
                updates.update({"sent_at": now, "sent_by_user_id": current_user.id})
            else:
                updates.update({
                    "sent_at": None,
                    "sent_by_user_id": None,
                    "is_received": False,
                    "received_at": None,
                    "received_by_user_id": None,
                })

        if data.is_received is not None and data.is_received != order.is_received:
            updates["is_received"] = data.is_received
            if data.is_received:
                updates.update({"received_at": now, "received_by_user_id": current_user.id})
            else:
                updates.update({"received_at": None, "received_by_user_id": None})

        items = [item.model_dump() for item in data.items] if data.items else None
        self.repository.update_order(order, updates, items)
        return api_response("Replenishment order updated successfully", self._full_order(order_id))

    def link_transfer(self, order_id: str, data: LinkTransferRequest, current_user: UserResponse) -> Dict[str, Any]:
        """Ligar el pedido con la transferencia CEDIS -> almacén que lo surte"""
        order = self.repository.get_by_id(order_id)
        if not order:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Replenishment order not found")

        authorized = (
            current_user.role == UserRole.ENCARGADO.value
            or (current_user.warehouse_id and current_user.warehouse_id == order.cedis_warehouse_id)
        )
        if not authorized:
            if not current_user.warehouse_id:
                reason = "User is not assigned to a warehouse"
            else:
                reason = (
                    f"User warehouse ({current_user.warehouse_id}) does not match "
                    f"order CEDIS warehouse ({order.cedis_warehouse_id})"
                )
            logger.warning(f"Usuario {current_user.id} sin permiso para ligar el pedido {order.order_number}")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=(
                    f"Forbidden: {reason}. Only users assigned to the CEDIS warehouse or users "
                    f"with 'encargado' role can link transfers to replenishment orders."
                )
            )

        transfer = self.repository.get_transfer(data.warehouse_transfer_id)
        if not transfer:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Warehouse transfer not found")

        if (
            transfer.source_warehouse_id != order.cedis_warehouse_id
            or transfer.destination_warehouse_id != order.source_warehouse_id
        ):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Transfer direction does not match replenishment order warehouses"
            )

        if order.warehouse_transfer_id != transfer.id:
            self.repository.update_order(order, {"warehouse_transfer_id": transfer.id})

        return api_response(
            "Replenishment order linked to warehouse transfer successfully",
            self._full_order(order_id)
        )

    def mark_buy_order_generated(self, data: MarkBuyOrderRequest) -> Dict[str, Any]:
        updated_count = self.repository.mark_buy_order_generated(data.detail_ids)
        return api_response(
            f"Successfully marked {updated_count} item(s) as buy order generated",
            {"updatedCount": updated_count, "detailIds": data.detail_ids}
        )
