from datetime import date
from typing import List
from pydantic import Field

from inventory_api.shared.schemas import CamelModel

# ===== REQUEST SCHEMAS =====

class WithdrawOrderCreate(CamelModel):
    """Retiro de una o más unidades por un empleado"""
    date_withdraw: date = Field(..., description="Fecha del retiro")
    employee_id: str = Field(..., description="Empleado que retira")
    num_items: int = Field(..., gt=0, description="Debe coincidir con len(products)")
    products: List[str] = Field(..., min_length=1, description="Unidades a retirar")
    is_complete: bool = False


class WithdrawOrderReturn(CamelModel):
    withdraw_order_id: str
    product_stock_ids: List[str] = Field(default_factory=list)


class WithdrawOrdersUpdate(CamelModel):
    """Devolución de unidades de una o varias órdenes"""
    date_return: date
    orders: List[WithdrawOrderReturn] = Field(default_factory=list)
