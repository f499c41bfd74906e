from typing import List, Optional
from enum import Enum
from pydantic import Field, field_validator

from inventory_api.shared.inventory import ShrinkageReason
from inventory_api.shared.schemas import CamelModel

# ===== ENUMS =====

class Scope(str, Enum):
    GLOBAL = "global"
    WAREHOUSE = "warehouse"

# ===== REQUEST SCHEMAS =====

class WriteoffCreate(CamelModel):
    """Merma manual sobre una o más unidades"""
    product_ids: List[str] = Field(..., min_length=1, description="Unidades a dar de baja")
    reason: ShrinkageReason = Field(..., description="consumido | dañado | otro")
    notes: Optional[str] = Field(None, max_length=500, description="Obligatorio si reason = otro")

    @field_validator("notes")
    @classmethod
    def strip_notes(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.strip() or None
