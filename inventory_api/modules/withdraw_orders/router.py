from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from inventory_api.config.database import get_db
from .service import WithdrawOrderService
from .schemas import WithdrawOrderCreate, WithdrawOrdersUpdate

router = APIRouter()


@router.get("/all")
async def get_all_withdraw_orders(db: Session = Depends(get_db)):
    service = WithdrawOrderService(db)
    return service.get_all()


@router.get("/details")
async def get_withdraw_order_details(
    employee_id: str = Query(..., alias="employeeId"),
    db: Session = Depends(get_db)
):
    """Unidades retiradas por un empleado con código de barras y descripción"""
    service = WithdrawOrderService(db)
    return service.get_details_by_employee(employee_id)


@router.post("/create", status_code=status.HTTP_201_CREATED)
async def create_withdraw_order(order_data: WithdrawOrderCreate, db: Session = Depends(get_db)):
    """
    Crear orden de retiro

    **Validaciones:**
    - numItems debe coincidir con el número de productos
    - Las unidades deben existir y no estar en uso
    """
    service = WithdrawOrderService(db)
    return service.create(order_data)


@router.post("/update")
async def return_withdraw_orders(update_data: WithdrawOrdersUpdate, db: Session = Depends(get_db)):
    """Registrar devoluciones; 207 si alguna orden falla"""
    service = WithdrawOrderService(db)
    return service.return_products(update_data)
