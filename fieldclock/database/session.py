from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

# Declare a base class for your ORM models
Base = declarative_base()


def build_engine(database_url):
    """Create the SQLAlchemy engine for ``database_url``.

    In-memory SQLite gets a single shared connection so every session sees the same tables.
    """
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, **kwargs)
    return create_engine(database_url, pool_pre_ping=True)


def build_session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def create_tables(engine):
    # models must be imported so their tables are registered on Base.metadata
    from fieldclock import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
