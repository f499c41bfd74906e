from typing import List, Optional
from pydantic import Field
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    # App Info
    app_name: str = "Inventory Back Office API"
    version: str = "1.0.0"
    debug: bool = False
    log_level: str = "INFO"

    # Database
    database_url: str
    auto_create_tables: bool = Field(
        default=False,
        description="Crear las tablas al iniciar (solo desarrollo)"
    )

    # Security
    secret_key: str
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 10080  # 1 week

    # Cuenta dueña de operaciones destructivas (purge-non-cedis)
    main_account_email: Optional[str] = Field(
        default=None,
        description="Email de la cuenta principal autorizada para purgar inventario"
    )

    # CORS
    allowed_origins: List[str] = [
        "http://localhost:3000",
        "http://localhost:8081",
    ]

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    class Config:
        env_file = ".env"
        case_sensitive = False

settings = Settings()
