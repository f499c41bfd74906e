from typing import Optional
from pydantic import Field, model_validator

from inventory_api.shared.schemas import CamelModel

TIME_PATTERN = r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$"

# ===== REQUEST SCHEMAS =====

class WarehouseCreate(CamelModel):
    """Alta de almacén (crea también su gabinete)"""
    name: str = Field(..., min_length=1, max_length=255, description="Nombre del almacén")
    code: str = Field(..., min_length=1, max_length=50, description="Código único")
    description: Optional[str] = Field(None, max_length=1000)
    is_active: bool = True
    allows_inbound: bool = True
    allows_outbound: bool = True
    requires_approval: bool = False
    operating_hours_start: str = Field("08:00", pattern=TIME_PATTERN, description="HH:MM")
    operating_hours_end: str = Field("18:00", pattern=TIME_PATTERN, description="HH:MM")
    time_zone: str = Field("UTC", max_length=50)
    notes: Optional[str] = Field(None, max_length=2000)
    custom_fields: Optional[str] = Field(None, max_length=5000)


class WarehouseConfigUpdate(CamelModel):
    """Configuración externa y bandera CEDIS"""
    altegio_id: Optional[int] = Field(None, ge=0)
    consumables_id: Optional[int] = Field(None, ge=0)
    sales_id: Optional[int] = Field(None, ge=0)
    is_cedis: Optional[bool] = None

    @model_validator(mode="after")
    def at_least_one_field(self):
        if all(
            value is None
            for value in (self.altegio_id, self.consumables_id, self.sales_id, self.is_cedis)
        ):
            raise ValueError(
                "At least one field (altegioId, consumablesId, salesId, or isCedis) must be provided"
            )
        return self
