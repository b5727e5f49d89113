"""Database configuration for the alumni messaging service."""
from typing import Generator
import logging
import os

from dotenv import load_dotenv
from sqlalchemy import event
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, create_engine

load_dotenv()

logger = logging.getLogger(__name__)

# Use the DATABASE_URL from environment variable, with fallback to SQLite for local dev
DATABASE_URL = os.environ.get("DATABASE_URL", "sqlite:///./alumnet_dev.db")
IS_SQLITE = DATABASE_URL.startswith("sqlite")
IN_MEMORY = DATABASE_URL in ("sqlite://", "sqlite:///:memory:")

if IS_SQLITE:
    logger.info("[DB CONFIG] Using SQLite database: %s", DATABASE_URL)
else:
    logger.info("[DB CONFIG] Using PostgreSQL database")

connect_args = {"check_same_thread": False} if IS_SQLITE else {}

if IN_MEMORY:
    # A single shared connection, otherwise every checkout gets an empty database
    engine = create_engine(
        DATABASE_URL,
        echo=False,
        connect_args=connect_args,
        poolclass=StaticPool,
    )
elif IS_SQLITE:
    engine = create_engine(DATABASE_URL, echo=False, connect_args=connect_args)
else:
    engine = create_engine(DATABASE_URL, echo=False, pool_pre_ping=True)


if IS_SQLITE:
    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        if not IN_MEMORY:
            cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()


def get_session() -> Generator[Session, None, None]:
    """Dependency for getting database sessions."""
    with Session(engine) as session:
        yield session
