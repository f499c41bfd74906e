"""
Módulo de Empleados, Usuarios y Permisos
"""

from .router import router as employees_router, users_router, permissions_router
from .service import EmployeeService

__all__ = [
    "employees_router",
    "users_router",
    "permissions_router",
    "EmployeeService"
]
