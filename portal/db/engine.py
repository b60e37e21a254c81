import logging
import time
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from portal.core.settings import DsnSettings, Settings
from portal.models.models import Base

logger = logging.getLogger(__name__)


def build_engine(dsn: DsnSettings) -> Engine:
    """
    Create a pooled SQLAlchemy engine for a DSN.

    SQLite URLs skip pool sizing; in-memory SQLite shares one connection
    so every session sees the same database.
    """
    if not dsn.url:
        raise ValueError("database URL is not configured")

    url = make_url(dsn.url)
    if url.get_backend_name() == "sqlite":
        if url.database in (None, "", ":memory:"):
            return create_engine(
                url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        return create_engine(url, connect_args={"check_same_thread": False})

    return create_engine(
        url,
        pool_pre_ping=True,
        pool_size=dsn.pool_size,
        max_overflow=dsn.max_overflow,
        pool_recycle=dsn.pool_recycle,
    )


class Database:
    """Pooled engine plus the session factory bound to it."""

    def __init__(self, engine: Engine):
        self.engine = engine
        self.SessionLocal = sessionmaker(
            bind=engine, autoflush=False, expire_on_commit=False
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        return cls(build_engine(settings.database))

    @classmethod
    def from_url(cls, url: str) -> "Database":
        return cls(build_engine(DsnSettings(url=url)))

    @contextmanager
    def session(self) -> Iterator[Session]:
        db = self.SessionLocal()
        try:
            yield db
        finally:
            db.close()

    def create_all(self) -> None:
        Base.metadata.create_all(self.engine)

    def ping(self) -> float:
        """
        Check connectivity.

        Returns:
            Round-trip latency in milliseconds
        """
        started = time.perf_counter()
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return (time.perf_counter() - started) * 1000

    def dispose(self, reason: Optional[str] = None) -> None:
        if reason:
            logger.info(f"Disposing database engine: {reason}")
        self.engine.dispose()
