# app/db/session.py
"""Declarative base and the sync engine used outside the request path (Alembic, test bootstrap)."""
from sqlalchemy import MetaData, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base

from app.core.config import settings

# nombres estables: Alembic en modo batch (SQLite) necesita constraints con nombre
NAMING_CONVENTION = {
    "ix": "ix_%(table_name)s_%(column_0_name)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

Base = declarative_base(metadata=MetaData(naming_convention=NAMING_CONVENTION))


def create_sync_engine(url: str | None = None) -> Engine:
    url = url or settings.DATABASE_URL
    # SQLite requires special connect args for multi-thread access.
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, pool_pre_ping=True, connect_args=connect_args)
