"""Database connection management."""
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional
from sqlalchemy import create_engine, Engine, text
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, sessionmaker
from fxrates.database.models import Base
from fxrates.database.session import session_scope
import logging

logger = logging.getLogger(__name__)


class Database:
    """Owns one engine and its session factory.

    Constructed by the host application at startup and disposed at shutdown.
    """

    def __init__(self, url: str, echo: bool = False):
        self.url = url
        self.engine: Engine = create_engine_for_url(url, echo=echo)
        self.SessionLocal: sessionmaker = sessionmaker(
            autocommit=False, autoflush=False, expire_on_commit=False, bind=self.engine
        )

    @property
    def dialect(self) -> str:
        return self.engine.dialect.name

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        """Transactional session: commit on success, rollback on error."""
        with session_scope(self.SessionLocal) as session:
            yield session

    def create_tables(self) -> None:
        """Create all database tables."""
        Base.metadata.create_all(bind=self.engine)
        logger.info("Database tables created")

    def drop_tables(self) -> None:
        """Drop all database tables (for testing)."""
        Base.metadata.drop_all(bind=self.engine)
        logger.info("Database tables dropped")

    def ping(self) -> None:
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))

    def dispose(self) -> None:
        self.engine.dispose()


def create_engine_for_url(url: str, echo: bool = False) -> Engine:
    """Create an engine, preparing SQLite file paths and thread settings."""
    parsed = make_url(url)
    connect_args = {}

    if parsed.get_backend_name() == "sqlite":
        connect_args["check_same_thread"] = False  # SQLite specific
        database: Optional[str] = parsed.database
        if database and database != ":memory:":
            Path(database).parent.mkdir(parents=True, exist_ok=True)

    engine = create_engine(url, connect_args=connect_args, echo=echo)
    logger.info(f"Database engine created: {parsed.render_as_string(hide_password=True)}")
    return engine
