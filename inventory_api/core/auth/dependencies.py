from typing import List, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from inventory_api.config.database import get_db
from inventory_api.core.auth.schemas import UserResponse
from inventory_api.core.auth.security import decode_token
from inventory_api.shared.database.models import User

bearer_scheme = HTTPBearer(auto_error=False)


def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db)
) -> Optional[UserResponse]:
    """Usuario de la sesión o None si no hay token"""
    if credentials is None:
        return None

    payload = decode_token(credentials.credentials)
    user_id = payload.get("sub")
    if not user_id:
        return None

    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        return None
    return UserResponse.model_validate(user)


def get_current_user(
    current_user: Optional[UserResponse] = Depends(get_optional_user)
) -> UserResponse:
    """Usuario autenticado obligatorio"""
    if current_user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return current_user


def require_roles(allowed_roles: List[str]):
    """Dependency factory: solo los roles indicados"""

    def role_checker(current_user: UserResponse = Depends(get_current_user)) -> UserResponse:
        if current_user.role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Role required: {' or '.join(allowed_roles)}"
            )
        return current_user

    return role_checker
