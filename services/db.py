from contextlib import contextmanager
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

from config import DATABASE_CONFIG
from .errores import ErrorPersistencia

Base = declarative_base()
_engine = None
SessionLocal = None
DATABASE_URL = None


def _normalizar_url(url: str) -> str:
    url = (url or "").strip()
    if url.startswith("postgres://"):
        # SQLAlchemy recomienda el esquema postgresql+psycopg2
        url = url.replace("postgres://", "postgresql+psycopg2://", 1)
    return url


def configurar(url: str = None):
    """(Re)configura el engine. Sin argumento usa DATABASE_URL del entorno."""
    global _engine, SessionLocal, DATABASE_URL
    if _engine is not None:
        _engine.dispose()
    DATABASE_URL = _normalizar_url(url if url is not None else DATABASE_CONFIG["URL"])
    if not DATABASE_URL:
        raise RuntimeError("DATABASE_URL no configurada")

    if DATABASE_URL in ("sqlite://", "sqlite:///:memory:"):
        # Una sola conexión compartida para que la base en memoria sobreviva entre sesiones
        _engine = create_engine(
            DATABASE_URL,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=DATABASE_CONFIG["ECHO"],
        )
    else:
        if DATABASE_URL.startswith("sqlite:///"):
            Path(DATABASE_URL[len("sqlite:///"):]).parent.mkdir(parents=True, exist_ok=True)
        _engine = create_engine(DATABASE_URL, pool_pre_ping=True, echo=DATABASE_CONFIG["ECHO"])
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=_engine)
    return _engine


def get_engine():
    if _engine is None:
        configurar()
    return _engine


def get_session():
    if SessionLocal is None:
        get_engine()
    return SessionLocal()


@contextmanager
def sesion_transaccional():
    """Abre una sesión, hace commit al salir y rollback ante cualquier error.

    Los errores de SQLAlchemy se traducen a ErrorPersistencia; el resto se
    propaga tal cual después del rollback.
    """
    session = get_session()
    try:
        yield session
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        raise ErrorPersistencia(f"Error de base de datos: {e}") from e
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db():
    engine = get_engine()
    # Importar modelos aquí para registrar metadata
    from .models import Joya, Venta  # noqa: F401
    Base.metadata.create_all(bind=engine)
    return True


def drop_db():
    from .models import Joya, Venta  # noqa: F401
    Base.metadata.drop_all(bind=get_engine())
