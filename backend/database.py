from sqlalchemy import MetaData, Table, create_engine
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from backend.config import settings


connect_args = {"check_same_thread": False} if settings.database_url.startswith("sqlite") else {}
engine = create_engine(settings.database_url, pool_pre_ping=True, connect_args=connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def reflect_table(name: str, bind: Engine | Connection) -> Table:
    """Load an upstream table definition without declaring its columns.

    Fallback tables and views are owned by the ingestion side and their
    column sets drift, so they are read by reflection rather than mapped.
    Raises ``sqlalchemy.exc.NoSuchTableError`` when the table is missing.
    """
    return Table(name, MetaData(), autoload_with=bind)
