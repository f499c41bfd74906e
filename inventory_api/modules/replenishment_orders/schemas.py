from typing import List, Optional
from enum import Enum
from pydantic import Field, field_validator, model_validator

from inventory_api.shared.schemas import CamelModel

# ===== ENUMS =====

class OrderStatusFilter(str, Enum):
    OPEN = "open"
    SENT = "sent"
    RECEIVED = "received"

# ===== REQUEST SCHEMAS =====

class ReplenishmentOrderItem(CamelModel):
    barcode: int = Field(..., ge=0)
    quantity: int = Field(..., gt=0)
    notes: Optional[str] = Field(None, max_length=2000)
    sent_quantity: Optional[int] = Field(None, ge=0)
    buy_order_generated: Optional[bool] = None

    @field_validator("notes")
    @classmethod
    def strip_notes(cls, value: Optional[str]) -> Optional[str]:
        return value.strip() if value is not None else None


class ReplenishmentOrderCreate(CamelModel):
    """Pedido de un almacén hacia el CEDIS"""
    source_warehouse_id: str = Field(..., description="Almacén que solicita")
    cedis_warehouse_id: str = Field(..., description="CEDIS que surte el pedido")
    items: List[ReplenishmentOrderItem] = Field(..., min_length=1)
    notes: Optional[str] = Field(None, max_length=2000)


class ReplenishmentOrderUpdate(CamelModel):
    is_sent: Optional[bool] = None
    is_received: Optional[bool] = None
    notes: Optional[str] = Field(None, max_length=2000)
    items: Optional[List[ReplenishmentOrderItem]] = Field(None, min_length=1)

    @model_validator(mode="after")
    def at_least_one_field(self):
        if all(
            value is None
            for value in (self.is_sent, self.is_received, self.notes, self.items)
        ):
            raise ValueError("Provide at least one field to update")
        return self


class LinkTransferRequest(CamelModel):
    warehouse_transfer_id: str = Field(..., description="Transferencia que surte el pedido")


class MarkBuyOrderRequest(CamelModel):
    detail_ids: List[str] = Field(..., min_length=1)
