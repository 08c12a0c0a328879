"""Database session management."""
from contextlib import contextmanager
from typing import Generator
from sqlalchemy.orm import Session, sessionmaker


@contextmanager
def session_scope(factory: sessionmaker) -> Generator[Session, None, None]:
    """
    Context manager for database sessions.

    Usage:
        with session_scope(SessionLocal) as db:
            db.execute(select(Model)).all()
    """
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
