from typing import List, Optional
from enum import Enum
from pydantic import Field

from inventory_api.shared.schemas import CamelModel

# ===== ENUMS =====

class TransferType(str, Enum):
    EXTERNAL = "external"   # CEDIS -> almacén
    INTERNAL = "internal"   # almacén <-> gabinete


class TransferPriority(str, Enum):
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class ItemCondition(str, Enum):
    GOOD = "good"
    DAMAGED = "damaged"
    NEEDS_INSPECTION = "needs_inspection"

# ===== REQUEST SCHEMAS =====

class TransferDetailCreate(CamelModel):
    product_stock_id: str
    quantity_transferred: int = Field(..., gt=0, description="Cantidad transferida")
    item_condition: ItemCondition = Field(ItemCondition.GOOD)
    item_notes: Optional[str] = Field(None, max_length=500)
    # Datos del sistema externo de stock, se aceptan pero no se persisten
    good_id: Optional[int] = Field(None, gt=0)
    cost_per_unit: Optional[float] = Field(None, ge=0)


class WarehouseTransferCreate(CamelModel):
    """Transferencia externa (CEDIS -> almacén) o interna (almacén <-> gabinete)"""
    transfer_number: str = Field(..., min_length=1, max_length=100)
    transfer_type: TransferType
    source_warehouse_id: str
    destination_warehouse_id: str
    initiated_by: str = Field(..., description="Usuario que inicia la transferencia")
    cabinet_id: Optional[str] = None
    transfer_reason: Optional[str] = Field(None, max_length=500)
    notes: Optional[str] = Field(None, max_length=1000)
    priority: TransferPriority = Field(TransferPriority.NORMAL)
    transfer_details: List[TransferDetailCreate] = Field(..., min_length=1, max_length=100)
    is_cabinet_to_warehouse: bool = False


class TransferStatusUpdate(CamelModel):
    transfer_id: str
    is_completed: Optional[bool] = None
    is_pending: Optional[bool] = None
    is_cancelled: Optional[bool] = None
    completed_by: Optional[str] = None
    notes: Optional[str] = Field(None, max_length=1000)
    replicate_to_altegio: Optional[bool] = None


class TransferItemStatusUpdate(CamelModel):
    transfer_detail_id: str
    is_received: Optional[bool] = None
    received_by: Optional[str] = None
    item_condition: Optional[ItemCondition] = None
    item_notes: Optional[str] = Field(None, max_length=500)
