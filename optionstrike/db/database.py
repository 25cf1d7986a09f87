"""
Database configuration and session management.

Uses SQLAlchemy for ORM. Tables are created with init_db(); the schema is
small enough that no migration tool is involved.
"""

import os

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from optionstrike.config import settings


def create_db_engine(db_url: str, echo: bool = False) -> Engine:
    """
    Create an engine with sane connect args for SQLite and PostgreSQL.

    In-memory SQLite shares one connection so every session sees the same tables.
    """
    db_url_lower = db_url.lower()

    kwargs = {"echo": echo, "pool_pre_ping": True}
    if "sqlite" in db_url_lower:
        kwargs["connect_args"] = {"check_same_thread": False}
        if ":memory:" in db_url_lower or db_url_lower.rstrip("/") == "sqlite:":
            kwargs["poolclass"] = StaticPool
    elif db_url_lower.startswith("postgres"):
        # psycopg2 connect timeout is in seconds
        connect_timeout = int(os.getenv("DB_CONNECT_TIMEOUT", "5"))
        kwargs["connect_args"] = {"connect_timeout": connect_timeout}

    return create_engine(db_url, **kwargs)


def create_session_factory(bind: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=bind)


# Create database engine
engine = create_db_engine(settings.DATABASE_URL, echo=settings.DEBUG)

# Create session factory
SessionLocal = create_session_factory(engine)

# Base class for models
Base = declarative_base()


def init_db(bind: Engine = None) -> None:
    """Create all tables that don't exist yet."""
    # models must be imported so their tables are registered on Base.metadata
    from optionstrike.db import models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
