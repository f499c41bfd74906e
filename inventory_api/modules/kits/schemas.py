from typing import List, Optional
from pydantic import Field

from inventory_api.shared.schemas import CamelModel

# ===== REQUEST SCHEMAS =====

class KitItemCreate(CamelModel):
    product_id: str = Field(..., description="Unidad que forma parte del kit")
    observations: Optional[str] = Field(None, max_length=500)


class KitCreate(CamelModel):
    """Kit asignado a un empleado"""
    assigned_employee: str = Field(..., description="Empleado que recibe el kit")
    observations: Optional[str] = Field(None, max_length=1000)
    kit_items: List[KitItemCreate] = Field(..., min_length=1, max_length=50)


class KitUpdate(CamelModel):
    kit_id: str
    observations: Optional[str] = Field(None, max_length=1000)
    is_partial: Optional[bool] = None
    is_complete: Optional[bool] = None


class KitItemStatusUpdate(CamelModel):
    kit_item_id: str
    is_returned: Optional[bool] = None
    observations: Optional[str] = Field(None, max_length=500)
