"""
Database session management (SQLAlchemy)
"""
from sqlalchemy import create_engine, text
from sqlalchemy.orm import DeclarativeBase, sessionmaker, Session

from subtrack.config import get_settings


class Base(DeclarativeBase):
    """
    SQLAlchemy declarative base for all ORM models
    """
    pass


# Singleton engine and session factory
_engine = None
_SessionLocal = None


def get_engine():
    """Get or create SQLAlchemy engine (singleton)"""
    global _engine
    if _engine is None:
        settings = get_settings()
        url = settings.get_sqlalchemy_url()
        connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
        _engine = create_engine(url, pool_pre_ping=True, connect_args=connect_args)
    return _engine


def get_session_factory():
    """Get or create session factory (singleton)"""
    global _SessionLocal
    if _SessionLocal is None:
        engine = get_engine()
        _SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    return _SessionLocal


def init_db() -> None:
    """Create tables that do not exist yet"""
    # models must be imported so their tables are registered on Base.metadata
    from subtrack.infrastructure.db import models  # noqa: F401
    Base.metadata.create_all(get_engine())


def get_db() -> Session:
    """
    Dependency для FastAPI - создает session и автоматически закрывает

    Usage:
        @app.get("/subscriptions")
        def list_subscriptions(db: Session = Depends(get_db)):
            ...
    """
    SessionLocal = get_session_factory()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def check_db_connection(db: Session | None = None) -> None:
    """
    Health check - проверка доступности БД

    Args:
        db: открытая session; без неё проверяется engine напрямую

    Raises:
        sqlalchemy.exc.OperationalError: если БД недоступна
    """
    if db is not None:
        db.execute(text("SELECT 1"))
        return
    with get_engine().connect() as conn:
        conn.execute(text("SELECT 1"))
