import logging

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session, sessionmaker

from quizdesk.core.config import settings
from quizdesk.models.orm import Base

logger = logging.getLogger(__name__)

_UPSERT_INSERTS = {"postgresql": pg_insert, "sqlite": sqlite_insert}


def build_engine(url: str) -> Engine:
    if url.startswith("sqlite"):
        # request handlers run on a threadpool
        return create_engine(url, future=True, connect_args={"check_same_thread": False})
    return create_engine(url, future=True, pool_pre_ping=True, pool_size=settings.DATABASE_POOL_SIZE)


engine = build_engine(settings.DATABASE_URL)
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind: Engine = engine) -> None:
    """Create tables if they don't exist."""
    Base.metadata.create_all(bind)
    logger.info("Database schema ready")


def dialect_insert(db: Session):
    """``insert()`` construct that supports ``on_conflict_do_update`` for the bound dialect."""
    dialect = db.get_bind().dialect.name
    try:
        return _UPSERT_INSERTS[dialect]
    except KeyError:
        raise RuntimeError(f"Atomic upsert not supported on {dialect}") from None
