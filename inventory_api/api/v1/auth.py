import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from inventory_api.config.database import get_db
from inventory_api.config.settings import settings
from inventory_api.core.auth.dependencies import get_current_user
from inventory_api.core.auth.schemas import LoginRequest, TokenResponse, UserResponse
from inventory_api.core.auth.security import create_access_token, verify_password
from inventory_api.shared.database.models import User

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/login", response_model=TokenResponse)
async def login(credentials: LoginRequest, db: Session = Depends(get_db)):
    """
    Iniciar sesión con email y contraseña

    **Respuesta:** token Bearer y datos del usuario
    """
    email = credentials.email.strip().lower()
    user = db.query(User).filter(User.email == email).first()

    if not user or not user.password_hash or not verify_password(credentials.password, user.password_hash):
        logger.warning(f"Intento de login fallido para {email}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return TokenResponse(
        access_token=create_access_token(user.id),
        expires_in=settings.access_token_expire_minutes * 60,
        user=UserResponse.model_validate(user),
    )


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: UserResponse = Depends(get_current_user)):
    """Usuario de la sesión actual"""
    return current_user
