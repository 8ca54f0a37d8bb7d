from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker, Session
from typing import Generator, Optional
from contextlib import contextmanager
import logging

from pydantic import SecretStr
from pydantic_settings import BaseSettings
from .models import Base

logger = logging.getLogger(__name__)

class PostgresConfig(BaseSettings):
    """Connection settings for the hosted Postgres holding tickets, users and rules."""
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: SecretStr = "postgres"
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "credx"
    POSTGRES_POOL_SIZE: int = 5
    POSTGRES_MAX_OVERFLOW: int = 10
    # Full URL override, e.g. "sqlite:///data/credx.db" for local runs
    DATABASE_URL: Optional[str] = None

    model_config = {"env_file": ".env", "extra": "ignore"}

    @property
    def connection_string(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD.get_secret_value()}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"


def enable_sqlite_savepoints(engine: Engine) -> None:
    """
    Let SQLAlchemy emit BEGIN itself on SQLite.

    pysqlite otherwise defers BEGIN until the first DML statement, which
    breaks SAVEPOINT handling used to isolate rule runs.
    """

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")


class PostgresAdapter:
    """
    Owns the SQLAlchemy engine and hands out transactional sessions.

    Every rule store, ticket and execution log operation runs inside a session
    obtained from ``get_session()``; the session commits when the block exits
    cleanly and rolls back otherwise.
    """

    def __init__(self, config: PostgresConfig):
        self.config = config
        self._engine = None
        self._session_factory = None

    def connect(self) -> None:
        if self._engine:
            return

        url = make_url(self.config.connection_string)
        logger.info(f"Connecting to {url.get_backend_name()} at {url.host or url.database}")
        try:
            if url.get_backend_name() == "sqlite":
                self._engine = create_engine(url)
                enable_sqlite_savepoints(self._engine)
            else:
                self._engine = create_engine(
                    url,
                    pool_size=self.config.POSTGRES_POOL_SIZE,
                    max_overflow=self.config.POSTGRES_MAX_OVERFLOW,
                    pool_pre_ping=True,
                )
        except Exception as e:
            logger.error(f"Failed to create database engine: {e}")
            raise

        self._session_factory = sessionmaker(bind=self._engine, expire_on_commit=False)
        logger.info("Database connection pool established.")

    def close(self) -> None:
        if self._engine:
            self._engine.dispose()
            self._engine = None
            self._session_factory = None
            logger.info("Database connection pool closed.")

    def health_check(self) -> bool:
        if not self._engine:
            return False
        try:
            with self._engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except Exception:
            logger.exception("database unhealthy")
            return False

    def create_tables(self) -> None:
        """Create missing tables. Schema migrations are owned by the hosted backend."""
        if not self._engine:
            raise ConnectionError("Database is not connected. Call connect() first.")
        # Rule tables register on the shared metadata when imported
        import credx.rules.models  # noqa: F401
        Base.metadata.create_all(self._engine)

    @contextmanager
    def get_session(self) -> Generator[Session, None, None]:
        if not self._session_factory:
            raise ConnectionError("Database is not connected. Call connect() first.")

        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()
