"""Database configuration and session management.

Provides the SQLAlchemy engine, session factory and unit-of-work helper.
The engine is built lazily so importing models never opens a connection.
"""

import json
from collections.abc import Generator, Iterator
from contextlib import contextmanager
from functools import lru_cache

import structlog
from sqlalchemy import Engine, create_engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from app.domain.exceptions import ConflictError, DependencyFailure
from app.infrastructure.config import settings

logger = structlog.get_logger()


def json_dumps(value: object) -> str:
    """Serialize JSON columns keeping non-ASCII text searchable."""
    return json.dumps(value, ensure_ascii=False)


class Base(DeclarativeBase):
    """Base class for ORM models."""

    pass


@lru_cache
def get_engine() -> Engine:
    """Create the process-wide engine.

    Returns:
        SQLAlchemy engine bound to ``settings.database_url``.
    """
    return create_engine(
        settings.database_url,
        echo=settings.debug,
        pool_pre_ping=True,
        json_serializer=json_dumps,
    )


@lru_cache
def get_session_factory() -> sessionmaker[Session]:
    """Get the session factory.

    Returns:
        Session factory bound to the engine.
    """
    return sessionmaker(bind=get_engine(), expire_on_commit=False)


def get_session() -> Generator[Session, None, None]:
    """Get database session.

    Yields:
        Session for database operations.
    """
    session = get_session_factory()()
    try:
        yield session
    finally:
        session.close()


@contextmanager
def unit_of_work(session: Session) -> Iterator[Session]:
    """Run a block as one transaction.

    Commits when the block finishes, rolls back on any error. Unique
    constraint violations surface as a retryable ``ConflictError`` and other
    storage errors as ``DependencyFailure``.

    Args:
        session: Session to commit or roll back.

    Yields:
        The same session.

    Raises:
        ConflictError: If the database rejected a write on a unique constraint.
        DependencyFailure: If the database failed for any other reason.
    """
    try:
        yield session
        session.commit()
    except IntegrityError as e:
        session.rollback()
        logger.warning("Unique constraint violated", error=str(e.orig))
        raise ConflictError(
            "A product with the same identifier already exists",
            details={"constraint_error": str(e.orig)},
            retryable=True,
        ) from e
    except SQLAlchemyError as e:
        session.rollback()
        logger.error("Database operation failed", error=str(e))
        raise DependencyFailure("Database operation failed", details={"error": type(e).__name__}) from e
    except Exception:
        session.rollback()
        raise


@contextmanager
def storage_errors() -> Iterator[None]:
    """Surface storage errors of a read as ``DependencyFailure``.

    Raises:
        DependencyFailure: If the database failed.
    """
    try:
        yield
    except SQLAlchemyError as e:
        logger.error("Database read failed", error=str(e))
        raise DependencyFailure("Database operation failed", details={"error": type(e).__name__}) from e
