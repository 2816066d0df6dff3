from __future__ import annotations

from sqlalchemy import MetaData, create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import DeclarativeBase, sessionmaker

# Constraint names used for the catalog tables on every backend.
CATALOG_NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    metadata = MetaData(naming_convention=CATALOG_NAMING_CONVENTION)


def create_catalog_engine(dsn: str) -> Engine:
    """Engine for the catalog tables; SQLite files are shared with worker threads."""
    url = make_url(dsn)
    if url.get_backend_name() == "sqlite":
        return create_engine(url, connect_args={"check_same_thread": False})
    return create_engine(url, pool_pre_ping=True)


def create_session_factory(dsn: str):
    engine = create_catalog_engine(dsn)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, expire_on_commit=False)
