from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from inventory_api.config.database import get_db
from inventory_api.core.auth.dependencies import get_current_user
from inventory_api.core.auth.schemas import UserResponse
from .service import ReplenishmentOrderService
from .schemas import (
    OrderStatusFilter, ReplenishmentOrderCreate, ReplenishmentOrderUpdate,
    LinkTransferRequest, MarkBuyOrderRequest
)

router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_order(
    order_data: ReplenishmentOrderCreate,
    current_user: UserResponse = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Crear pedido de reabastecimiento

    **Validaciones:**
    - Sin barcodes repetidos
    - Almacén origen existente
    - Destino marcado como CEDIS
    """
    service = ReplenishmentOrderService(db)
    return service.create(order_data)


@router.get("")
async def list_orders(
    status_filter: Optional[OrderStatusFilter] = Query(None, alias="status"),
    current_user: UserResponse = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Pedidos filtrados por estado: open | sent | received"""
    service = ReplenishmentOrderService(db)
    return service.list_orders(status_filter)


@router.get("/warehouse/{warehouse_id}")
async def list_orders_by_warehouse(
    warehouse_id: str,
    current_user: UserResponse = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    service = ReplenishmentOrderService(db)
    return service.list_by_warehouse(warehouse_id)


@router.get("/unfulfilled-products")
async def get_unfulfilled_products(
    current_user: UserResponse = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Renglones de pedidos recibidos con envío incompleto y sin orden de compra"""
    service = ReplenishmentOrderService(db)
    return service.get_unfulfilled_products()


@router.patch("/mark-buy-order-generated")
async def mark_buy_order_generated(
    request: MarkBuyOrderRequest,
    current_user: UserResponse = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    service = ReplenishmentOrderService(db)
    return service.mark_buy_order_generated(request)


@router.get("/{order_id}")
async def get_order(
    order_id: str,
    current_user: UserResponse = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    service = ReplenishmentOrderService(db)
    return service.get_order(order_id)


@router.put("/{order_id}")
async def update_order(
    order_id: str,
    order_data: ReplenishmentOrderUpdate,
    current_user: UserResponse = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Enviar / recibir pedido, notas y cantidades enviadas por barcode"""
    service = ReplenishmentOrderService(db)
    return service.update(order_id, order_data, current_user)


@router.patch("/{order_id}/link-transfer")
async def link_transfer(
    order_id: str,
    request: LinkTransferRequest,
    current_user: UserResponse = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Ligar el pedido con la transferencia CEDIS -> almacén que lo surte"""
    service = ReplenishmentOrderService(db)
    return service.link_transfer(order_id, request, current_user)
