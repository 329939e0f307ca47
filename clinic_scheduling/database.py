import logging
import os
import time

from sqlalchemy import create_engine, event
from sqlalchemy.engine import make_url
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from .config import DATABASE_URL

logger = logging.getLogger(__name__)

# Get environment-specific pool settings
POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "20"))
MAX_OVERFLOW = int(os.getenv("DB_MAX_OVERFLOW", "30"))
POOL_TIMEOUT = int(os.getenv("DB_POOL_TIMEOUT", "30"))
POOL_RECYCLE = int(os.getenv("DB_POOL_RECYCLE", "300"))
ENABLE_QUERY_LOGGING = os.getenv("DB_LOG_SLOW_QUERIES", "true").lower() == "true"
SLOW_QUERY_THRESHOLD = float(os.getenv("DB_SLOW_QUERY_THRESHOLD", "1.0"))


def _is_memory_sqlite(url) -> bool:
    return url.get_backend_name() == "sqlite" and url.database in (None, "", ":memory:")


def create_db_engine(database_url: str):
    """
    Build an engine for the given URL.

    PostgreSQL gets the pooled production settings. SQLite file databases run
    every transaction as BEGIN IMMEDIATE so that booking check-and-insert is
    serialized between connections; in-memory SQLite shares one connection.
    """
    url = make_url(database_url)

    if url.get_backend_name() != "sqlite":
        db_engine = create_engine(
            database_url,
            pool_pre_ping=True,  # Test connections before using
            pool_recycle=POOL_RECYCLE,
            pool_size=POOL_SIZE,
            max_overflow=MAX_OVERFLOW,
            pool_timeout=POOL_TIMEOUT,
            echo=False,  # Don't log all SQL (use slow query logging instead)
        )
    elif _is_memory_sqlite(url):
        db_engine = create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        db_engine = create_engine(
            database_url,
            connect_args={"check_same_thread": False, "timeout": 15},
        )

        @event.listens_for(db_engine, "connect")
        def _sqlite_connect(dbapi_connection, _connection_record):
            # Let SQLAlchemy emit BEGIN itself
            dbapi_connection.isolation_level = None

        @event.listens_for(db_engine, "begin")
        def _sqlite_begin(conn):
            conn.exec_driver_sql("BEGIN IMMEDIATE")

    # Slow query logging for performance monitoring
    if ENABLE_QUERY_LOGGING:

        @event.listens_for(db_engine, "before_cursor_execute")
        def before_cursor_execute(conn, _cursor, statement, _parameters, context, _executemany):
            conn.info.setdefault("query_start_time", []).append(time.time())

        @event.listens_for(db_engine, "after_cursor_execute")
        def after_cursor_execute(conn, _cursor, statement, _parameters, context, _executemany):
            total = time.time() - conn.info["query_start_time"].pop(-1)
            if total > SLOW_QUERY_THRESHOLD:
                logger.warning(f"🐌 Slow query ({total:.2f}s): {statement[:200]}...")

    return db_engine


try:
    engine = create_db_engine(DATABASE_URL)
    logger.info(f"✅ Database engine created ({engine.dialect.name})")
except Exception as e:
    logger.error(f"❌ Failed to create database engine: {e}")
    raise

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
