import os
import logging
from sqlalchemy import create_engine, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

Base = declarative_base()


def create_engine_from_url(database_url: str):
    """
    Build a SQLAlchemy engine from a database URL.

    PostgreSQL gets pool_pre_ping=True to detect dropped connections.
    An in-memory SQLite URL gets a single shared connection so every
    session (and every request thread) sees the same database.
    """
    is_postgres = "postgresql" in database_url.lower() or "postgres" in database_url.lower()

    if is_postgres:
        engine = create_engine(
            database_url,
            echo=False,
            pool_pre_ping=True,
            pool_size=5,
            max_overflow=10,
        )
        logger.info("PostgreSQL engine created with pool_pre_ping=True")
    elif database_url.startswith("sqlite") and (":memory:" in database_url or database_url.rstrip("/") == "sqlite:"):
        engine = create_engine(
            database_url,
            echo=False,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        logger.info("In-memory SQLite engine created")
    else:
        connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
        engine = create_engine(database_url, echo=False, connect_args=connect_args)
        logger.info("SQLite engine created")

    return engine


def create_session_factory(database_url: str, create_tables: bool = False):
    """
    Build a SQLAlchemy session factory.

    Args:
        database_url: database connection URL
        create_tables: when True, create tables on the spot (dev/test only).
                       Production uses the Alembic migrations.
    """
    engine = create_engine_from_url(database_url)

    if create_tables:
        env = os.getenv("ENV", "dev").lower()
        if env == "prod":
            logger.warning(
                "⚠️  create_tables=True in production! "
                "Run the Alembic migrations instead of creating tables automatically."
            )
        else:
            logger.info("Creating tables automatically (dev/test mode)")
            # models must be registered on Base before create_all
            from . import models  # noqa: F401
            Base.metadata.create_all(bind=engine)

    return sessionmaker(bind=engine, expire_on_commit=False)


def ping_database(db_session_factory) -> bool:
    """Round-trip a SELECT 1; False when the database is unreachable."""
    db_session = db_session_factory()
    try:
        db_session.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError as e:
        logger.warning(f"Database health check failed: {type(e).__name__}: {e}")
        return False
    finally:
        db_session.close()
