"""
Autenticación por JWT Bearer.

- security.py: emisión/validación de tokens y hash de contraseñas
- dependencies.py: dependencias FastAPI (usuario actual, roles)
- schemas.py: modelos Pydantic de sesión
"""

from .dependencies import get_current_user, get_optional_user, require_roles
from .schemas import UserResponse, UserRole

__all__ = [
    "get_current_user",
    "get_optional_user",
    "require_roles",
    "UserResponse",
    "UserRole"
]
