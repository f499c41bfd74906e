from sqlalchemy import create_engine
from sqlalchemy.ext.declarative import declarative_base
from sqlalchemy.orm import sessionmaker
from .settings import settings

# SQLite (desarrollo local) no comparte conexiones entre hilos por defecto
_is_sqlite = settings.database_url.startswith("sqlite")

engine = create_engine(
    settings.database_url,
    connect_args={"check_same_thread": False} if _is_sqlite else {},
    pool_pre_ping=not _is_sqlite,
    echo=settings.debug
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base de los modelos ORM
Base = declarative_base()


def get_db():
    """Sesión por request; se cierra siempre al terminar"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db() -> None:
    """Crear las tablas que falten (entornos de desarrollo)"""
    # Registrar los modelos en el metadata antes de crear
    from inventory_api.shared.database import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
