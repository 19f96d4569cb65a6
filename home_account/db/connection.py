"""
Engine and session management.

The engine is created lazily from DATABASE_URL the first time a session is
requested:
- PostgreSQL behind a QueuePool on long-running servers
- NullPool on serverless deployments (VERCEL set), where every invocation
  opens its own connections
- SQLite for local development, shared across threads
"""

import os
import logging
import time
from contextlib import contextmanager
from typing import Generator, Optional

from dotenv import load_dotenv
from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import NullPool, QueuePool

from .models import Base

load_dotenv()

logger = logging.getLogger("home_account.db")

SLOW_CHECKOUT_MS = 100


class DatabaseConfig:
    """Connection settings read from the environment."""

    def __init__(self, env=None):
        env = os.environ if env is None else env
        self.database_url = env.get("DATABASE_URL")
        if not self.database_url:
            raise ValueError("DATABASE_URL is not set")

        self.pool_size = int(env.get("DB_POOL_SIZE", "5"))
        self.max_overflow = int(env.get("DB_MAX_OVERFLOW", "10"))
        self.pool_timeout = int(env.get("DB_POOL_TIMEOUT", "30"))
        self.pool_recycle = int(env.get("DB_POOL_RECYCLE", "3600"))
        self.echo = env.get("SQL_ECHO", "false").lower() == "true"
        self.serverless = bool(env.get("VERCEL"))

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    @property
    def safe_url(self) -> str:
        """URL with the password masked, for logs."""
        return make_url(self.database_url).render_as_string(hide_password=True)


def build_engine(config: DatabaseConfig) -> Engine:
    if config.serverless:
        engine = create_engine(config.database_url, poolclass=NullPool, echo=config.echo)
        pool = "NullPool"
    elif config.is_sqlite:
        engine = create_engine(
            config.database_url,
            connect_args={"check_same_thread": False},
            echo=config.echo,
        )
        pool = "SQLite default pool"
    else:
        engine = create_engine(
            config.database_url,
            poolclass=QueuePool,
            pool_size=config.pool_size,
            max_overflow=config.max_overflow,
            pool_timeout=config.pool_timeout,
            pool_recycle=config.pool_recycle,
            echo=config.echo,
        )
        pool = f"QueuePool(size={config.pool_size}, overflow={config.max_overflow})"

    logger.info("Database: %s using %s", config.safe_url, pool)
    _watch_checkouts(engine)
    return engine


def _watch_checkouts(engine: Engine) -> None:
    @event.listens_for(engine, "checkout")
    def ping_on_checkout(dbapi_conn, connection_record, connection_proxy):
        # A failing ping invalidates the pooled connection so the pool reconnects
        start = time.monotonic()
        cursor = dbapi_conn.cursor()
        try:
            cursor.execute("SELECT 1")
        except Exception as e:
            logger.error("Connection ping failed: %s", e)
            raise
        finally:
            cursor.close()
        elapsed_ms = (time.monotonic() - start) * 1000
        if elapsed_ms > SLOW_CHECKOUT_MS:
            logger.warning("Slow connection checkout: %.2fms", elapsed_ms)


class DatabaseManager:
    """
    Process-wide owner of the engine and session factory.

    Usage:
        with get_db_manager().session() as session:
            session.add(account)
    """

    _instance: Optional["DatabaseManager"] = None

    def __new__(cls, config: Optional[DatabaseConfig] = None):
        if cls._instance is None:
            instance = super().__new__(cls)
            instance._engine = build_engine(config or DatabaseConfig())
            instance._factory = sessionmaker(bind=instance._engine, expire_on_commit=False)
            cls._instance = instance
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Dispose the engine and forget the instance."""
        if cls._instance is not None:
            cls._instance.dispose()
            cls._instance = None

    @property
    def engine(self) -> Engine:
        return self._engine

    def new_session(self) -> Session:
        """A bare session; the caller closes it."""
        return self._factory()

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        """Session committed on success and rolled back on any exception."""
        session = self._factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    @contextmanager
    def transaction(self) -> Generator[Session, None, None]:
        """
        Run several statements atomically.

        Usage:
            with get_db_manager().transaction() as session:
                session.add(user)
                session.add(account)
        """
        with self._factory() as session, session.begin():
            yield session

    def create_all(self) -> None:
        Base.metadata.create_all(self._engine)
        logger.info("Database: schema ready (%d tables)", len(Base.metadata.tables))

    def dispose(self) -> None:
        self._engine.dispose()
        logger.info("Database: connection pool disposed")


def get_db_manager() -> DatabaseManager:
    return DatabaseManager()


@contextmanager
def db_session() -> Generator[Session, None, None]:
    """Shortcut for ``get_db_manager().session()`` in scripts."""
    with get_db_manager().session() as session:
        yield session


def get_db_session() -> Generator[Session, None, None]:
    """
    FastAPI dependency yielding one session per request.

    Commits when the route returns, rolls back when it raises, and always
    closes the session.
    """
    session = get_db_manager().new_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def get_engine() -> Engine:
    return get_db_manager().engine


def init_db() -> None:
    """Create missing tables; run by the app lifespan outside serverless."""
    get_db_manager().create_all()


def check_connection() -> bool:
    try:
        with db_session() as session:
            session.execute(text("SELECT 1"))
        return True
    except (SQLAlchemyError, ValueError) as e:
        logger.error("Database connection check failed: %s", e)
        return False
