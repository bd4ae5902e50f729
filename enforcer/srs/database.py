"""
Database - engine and schema management for the card store.

Uses SQLAlchemy with a SQLite file by default; any SQLAlchemy URL (e.g. a
Postgres connection string in DATABASE_URL) works.

This module handles ONLY connections and schema.
Queries live in enforcer.card_store.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from sqlalchemy import create_engine, inspect
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from enforcer import config
from enforcer.srs.models import Base

logger = logging.getLogger(__name__)


def get_engine(url: Optional[str] = None, echo: bool = False) -> Engine:
    """
    Create a SQLAlchemy engine for the card store.

    In-memory SQLite shares one connection across threads (StaticPool) so
    every session sees the same database. File-based SQLite gets its parent
    directory created. Other backends use a small connection pool.

    Args:
        url: Database URL (defaults to config.get_database_url())
        echo: Echo SQL statements

    Returns:
        SQLAlchemy Engine instance
    """
    db_url = make_url(url or config.get_database_url())

    if db_url.get_backend_name() == "sqlite":
        database = db_url.database
        if not database or database == ":memory:":
            return create_engine(
                db_url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
                echo=echo,
            )
        Path(database).parent.mkdir(parents=True, exist_ok=True)
        return create_engine(
            db_url,
            connect_args={"check_same_thread": False},
            echo=echo,
        )

    return create_engine(
        db_url,
        pool_size=5,           # Keep 5 connections open
        max_overflow=10,       # Allow up to 10 extra connections
        pool_pre_ping=True,    # Verify connections before use
        echo=echo,
    )


def get_session_factory(engine: Engine) -> sessionmaker:
    """Session factory bound to `engine`; objects stay usable after commit."""
    return sessionmaker(bind=engine, expire_on_commit=False)


def init_db(engine: Engine) -> None:
    """
    Initialize database schema if tables don't exist.

    Safe to call multiple times - only creates missing tables.
    """
    existing_tables = set(inspect(engine).get_table_names())
    if {"words", "cards", "reviews"} <= existing_tables:
        return
    Base.metadata.create_all(engine)
    logger.info("Created card store schema on %s", engine.url)


def reset_db(engine: Engine) -> None:
    """
    DANGEROUS: Delete all data and recreate tables.

    Only use this for testing or when you want to start fresh.
    All review history will be lost!
    """
    Base.metadata.drop_all(engine)
    logger.warning("All card store tables dropped on %s", engine.url)
    init_db(engine)
