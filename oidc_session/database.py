"""
Engine construction for SqlAlchemyStore. SQLite by default.
"""
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

from oidc_session.config import DATABASE_URL
from oidc_session.models import Base


def create_store_engine(url: str = DATABASE_URL) -> Engine:
    # In-memory SQLite needs StaticPool so every connection (and worker thread) sees the same DB
    if url.startswith("sqlite:///:memory:") or url == "sqlite://":
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    # Store calls run in worker threads
    connect_args = {"check_same_thread": False} if "sqlite" in url else {}
    return create_engine(url, connect_args=connect_args)


def init_db(engine: Engine) -> None:
    """Create the session table if missing."""
    Base.metadata.create_all(bind=engine)
