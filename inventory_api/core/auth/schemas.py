from typing import Optional
from enum import Enum
from pydantic import BaseModel, Field


class UserRole(str, Enum):
    ADMIN = "admin"
    ENCARGADO = "encargado"
    EMPLOYEE = "employee"


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=3, description="Email de la cuenta")
    password: str = Field(..., min_length=1, description="Contraseña")


class UserResponse(BaseModel):
    """Usuario autenticado disponible en cada request"""
    id: str
    name: str
    email: str
    role: str = UserRole.EMPLOYEE.value
    warehouse_id: Optional[str] = None

    class Config:
        from_attributes = True


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserResponse
