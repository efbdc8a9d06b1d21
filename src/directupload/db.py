"""Database engine and session factory for the upload session store."""

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from directupload.core.config import settings

Base = declarative_base()


def create_db_engine(database_url: str | None = None) -> Engine:
    """Create an engine for DATABASE_URL (or the given URL)."""
    url = database_url or settings.DATABASE_URL

    kwargs = {}
    if url.startswith("sqlite"):
        # SQLite connections are used from the request threadpool and the sweeper thread
        kwargs["connect_args"] = {"check_same_thread": False}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool

    return create_engine(url, **kwargs)


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def create_schema(engine: Engine) -> None:
    """Create the tables owned by this service if they don't exist."""
    # Register models on Base.metadata
    from directupload.uploads import models  # noqa: F401

    Base.metadata.create_all(engine)
