from typing import Optional
from enum import Enum
from pydantic import Field, model_validator

from inventory_api.shared.schemas import CamelModel

# ===== ENUMS =====

class LimitType(str, Enum):
    QUANTITY = "quantity"   # unidades disponibles en almacén
    USAGE = "usage"         # número de usos

# ===== REQUEST SCHEMAS =====

class StockLimitCreate(CamelModel):
    """Límite mínimo / máximo por almacén y barcode"""
    warehouse_id: str
    barcode: int = Field(..., ge=0)
    limit_type: LimitType = Field(LimitType.QUANTITY)
    min_quantity: Optional[int] = Field(None, ge=0)
    max_quantity: Optional[int] = Field(None, ge=0)
    min_usage: Optional[int] = Field(None, ge=0)
    max_usage: Optional[int] = Field(None, ge=0)
    notes: Optional[str] = Field(None, max_length=1000)

    @model_validator(mode="after")
    def validate_bounds(self):
        if self.limit_type == LimitType.QUANTITY:
            if self.min_quantity is None or self.max_quantity is None:
                raise ValueError("minQuantity and maxQuantity are required for quantity-based limits")
            if self.min_quantity > self.max_quantity:
                raise ValueError("minQuantity must be ≤ maxQuantity for quantity-based limits")
        else:
            if self.min_usage is None or self.max_usage is None:
                raise ValueError("minUsage and maxUsage are required for usage-based limits")
            if self.min_usage > self.max_usage:
                raise ValueError("minUsage must be ≤ maxUsage for usage-based limits")
        return self


class StockLimitUpdate(CamelModel):
    limit_type: Optional[LimitType] = None
    min_quantity: Optional[int] = Field(None, ge=0)
    max_quantity: Optional[int] = Field(None, ge=0)
    min_usage: Optional[int] = Field(None, ge=0)
    max_usage: Optional[int] = Field(None, ge=0)
    notes: Optional[str] = Field(None, max_length=1000)

    @model_validator(mode="after")
    def validate_bounds(self):
        if (
            self.min_quantity is not None
            and self.max_quantity is not None
            and self.min_quantity > self.max_quantity
        ):
            raise ValueError("minQuantity must be ≤ maxQuantity")
        if (
            self.min_usage is not None
            and self.max_usage is not None
            and self.min_usage > self.max_usage
        ):
            raise ValueError("minUsage must be ≤ maxUsage")
        return self

    def is_empty(self) -> bool:
        return not self.model_dump(exclude_none=True)
