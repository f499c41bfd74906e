from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from inventory_api.config.database import get_db
from inventory_api.core.auth.dependencies import require_roles
from inventory_api.core.auth.schemas import UserResponse
from .service import EmployeeService
from .schemas import EmployeeCreate, UserUpdate

router = APIRouter()
users_router = APIRouter()
permissions_router = APIRouter()

# ===== EMPLEADOS =====

@router.get("/all")
async def get_all_employees(db: Session = Depends(get_db)):
    """Empleados con su permiso asignado"""
    service = EmployeeService(db)
    return service.get_all()


@router.get("/by-user-id")
async def get_employee_by_user_id(
    user_id: str = Query(..., alias="userId"),
    db: Session = Depends(get_db)
):
    service = EmployeeService(db)
    return service.get_by_user_id(user_id)


@router.get("/by-warehouse-id")
async def get_employees_by_warehouse(
    warehouse_id: str = Query(..., alias="warehouseId"),
    db: Session = Depends(get_db)
):
    service = EmployeeService(db)
    return service.get_by_warehouse(warehouse_id)


@router.post("/create", status_code=status.HTTP_201_CREATED)
async def create_employee(employee_data: EmployeeCreate, db: Session = Depends(get_db)):
    """
    Alta de empleado

    **Validaciones:**
    - passcode de 4 dígitos (por defecto 1111)
    - almacén, usuario y permiso deben existir (400 si no)
    """
    service = EmployeeService(db)
    return service.create(employee_data)

# ===== USUARIOS =====

@users_router.get("/all")
async def get_all_users(db: Session = Depends(get_db)):
    service = EmployeeService(db)
    return service.get_users()


@users_router.post("/update")
async def update_user(
    user_data: UserUpdate,
    current_user: UserResponse = Depends(require_roles(["admin", "encargado"])),
    db: Session = Depends(get_db)
):
    """Actualizar rol y/o almacén de un usuario"""
    service = EmployeeService(db)
    return service.update_user(user_data)

# ===== PERMISOS =====

@permissions_router.get("/all")
async def get_all_permissions(db: Session = Depends(get_db)):
    service = EmployeeService(db)
    return service.get_permissions()
