import logging
import os
import time

from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker

from .config import DATABASE_URL

logger = logging.getLogger(__name__)

SLOW_QUERY_THRESHOLD = float(os.getenv("DB_SLOW_QUERY_THRESHOLD", "1.0"))


def _pool_options() -> dict:
    return {
        "pool_pre_ping": True,
        "pool_size": int(os.getenv("DB_POOL_SIZE", "10")),
        "max_overflow": int(os.getenv("DB_MAX_OVERFLOW", "20")),
        "pool_timeout": int(os.getenv("DB_POOL_TIMEOUT", "30")),
        "pool_recycle": int(os.getenv("DB_POOL_RECYCLE", "300")),
    }


def build_engine(url: str):
    """Create the engine; SQLite gets no pool tuning"""
    if url.startswith("sqlite"):
        return create_engine(url, connect_args={"check_same_thread": False})

    options = _pool_options()
    logger.info(
        f"📊 Appointment DB pool: size={options['pool_size']}, "
        f"overflow={options['max_overflow']}, timeout={options['pool_timeout']}s"
    )
    return create_engine(url, **options)


def log_slow_queries(target, threshold: float = SLOW_QUERY_THRESHOLD) -> None:
    """Warn about statements slower than threshold seconds"""

    @event.listens_for(target, "before_cursor_execute")
    def _start(conn, cursor, statement, parameters, context, executemany):
        conn.info.setdefault("query_started", []).append(time.perf_counter())

    @event.listens_for(target, "after_cursor_execute")
    def _finish(conn, cursor, statement, parameters, context, executemany):
        elapsed = time.perf_counter() - conn.info["query_started"].pop()
        if elapsed > threshold:
            logger.warning(f"🐌 Slow query ({elapsed:.2f}s): {statement[:200]}")


try:
    engine = build_engine(DATABASE_URL)
except Exception as e:
    logger.error(f"❌ Failed to create database engine: {e}")
    raise

if os.getenv("DB_LOG_SLOW_QUERIES", "true").lower() == "true":
    log_slow_queries(engine)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
