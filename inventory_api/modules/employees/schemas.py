from typing import Optional
from enum import Enum
from pydantic import Field

from inventory_api.shared.schemas import CamelModel


class AssignableRole(str, Enum):
    EMPLOYEE = "employee"
    ENCARGADO = "encargado"


class EmployeeCreate(CamelModel):
    """Alta de empleado"""
    name: str = Field(..., min_length=1, description="Nombre")
    surname: str = Field(..., min_length=1, description="Apellido")
    warehouse_id: str = Field(..., description="Almacén asignado")
    passcode: Optional[int] = Field(None, ge=1000, le=9999, description="Código de 4 dígitos")
    user_id: Optional[str] = Field(None, description="Cuenta de usuario a vincular")
    permissions: Optional[str] = Field(None, description="Permiso asignado")


class UserUpdate(CamelModel):
    user_id: str = Field(..., min_length=1)
    role: Optional[AssignableRole] = None
    warehouse_id: Optional[str] = None
