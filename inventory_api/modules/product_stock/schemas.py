from datetime import date
from typing import List, Optional
from pydantic import Field

from inventory_api.shared.schemas import CamelModel

# ===== REQUEST SCHEMAS =====

class ProductStockCreate(CamelModel):
    """Alta de unidades (se crean `quantity` registros idénticos)"""
    barcode: int = Field(..., ge=0, description="Código de barras del producto")
    quantity: int = Field(1, gt=0, description="Número de unidades a crear")
    current_warehouse: str = Field(..., description="Almacén donde se registra")
    last_used_by: Optional[str] = Field(None, description="Empleado que la usó por última vez")
    last_used: Optional[date] = None
    first_used: Optional[date] = None
    number_of_uses: int = Field(0, ge=0)
    is_being_used: bool = False
    is_kit: bool = False
    description: Optional[str] = None


class UsageUpdate(CamelModel):
    product_stock_id: str = Field(..., description="Unidad a actualizar")
    is_being_used: Optional[bool] = None
    last_used_by: Optional[str] = None
    last_used: Optional[date] = None
    first_used: Optional[date] = None
    increment_uses: bool = False


class IsKitToggle(CamelModel):
    product_stock_id: str


class ProductIdsRequest(CamelModel):
    product_ids: List[str] = Field(..., min_length=1, description="Unidades a marcar como vacías")
