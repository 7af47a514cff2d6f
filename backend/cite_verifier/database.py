from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool


Base = declarative_base()


def make_engine(database_url: str):
    """
    Create the SQLAlchemy engine for the citation store.

    SQLite connections are shared across FastAPI's worker threads, and an
    in-memory SQLite database only exists for the life of one connection,
    so it is pinned to a single pooled connection.
    """
    kwargs = {}
    if database_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
    return create_engine(database_url, **kwargs)


def make_session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=True, expire_on_commit=False, bind=engine)


def init_db(engine):
    """Create the citations table if it does not exist."""
    # Import so the model is registered on Base.metadata
    from . import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
