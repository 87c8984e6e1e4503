"""Database configuration and session management.

This module initializes the SQLAlchemy engine, session factory,
and declarative base, and provides a database session dependency
for FastAPI routes.
"""

import sqlite3

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base

from .core import get_settings


settings = get_settings()


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True}


engine = create_engine(
    settings.DATABASE_URL,
    future=True,
    **_engine_kwargs(settings.DATABASE_URL),
)
"""SQLAlchemy engine bound to the configured database URL."""


SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
    future=True,
)
"""Factory for database sessions."""


Base = declarative_base()
"""Declarative base class for SQLAlchemy models."""


@event.listens_for(Engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    """Turn on ``ON DELETE CASCADE`` support for SQLite connections."""
    if isinstance(dbapi_connection, sqlite3.Connection):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def get_db():
    """
    Provide a SQLAlchemy database session.

    This function is used as a FastAPI dependency.
    It yields a database session and ensures it is
    properly closed after the request is completed.
    The session starts out bound to the anonymous principal;
    request dependencies bind the resolved caller.
    """

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
