"""
database.py — engine, SessionLocal and the get_db request dependency.

Sessions are synchronous; routes run their queries through run_in_threadpool.
"""

import os
import logging
from typing import Generator

from sqlalchemy import create_engine, event, text
from sqlalchemy.orm import sessionmaker, Session

logger = logging.getLogger(__name__)

_raw_db_url = os.getenv('DATABASE_URL', 'sqlite:///trip_planner.db')


def _safe_db_url(url: str) -> str:
    """Hosted PostgreSQL providers sometimes hand out postgres:// instead of postgresql://."""
    if url.startswith('postgres://'):
        url = 'postgresql://' + url[len('postgres://'):]
    return url


_db_url = _safe_db_url(_raw_db_url)

# ── Engine ────────────────────────────────────────────────────────────────────
_connect_args: dict = {}
if _db_url.startswith('sqlite'):
    _connect_args = {'timeout': 15, 'check_same_thread': False}

engine = create_engine(
    _db_url,
    connect_args=_connect_args,
    pool_pre_ping=True,
)

# ── SQLite pragmas ────────────────────────────────────────────────────────────
# WAL lets readers proceed while one writer commits; foreign_keys makes the
# trip → children references real constraints.
if _db_url.startswith('sqlite'):
    @event.listens_for(engine, 'connect')
    def _set_sqlite_pragmas(dbapi_conn, _connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute('PRAGMA journal_mode=WAL')
        cursor.execute('PRAGMA foreign_keys=ON')
        cursor.close()

    try:
        with engine.connect() as conn:
            conn.execute(text('PRAGMA journal_mode=WAL'))
        logger.info("SQLite WAL mode enabled")
    except Exception as exc:
        logger.warning("Could not prime SQLite WAL mode: %s", exc)

# ── Session factory ───────────────────────────────────────────────────────────
SessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,   # rows are serialised after commit, outside the threadpool call
)


def get_db() -> Generator[Session, None, None]:
    """Yield a SQLAlchemy session for the duration of a request, then close it."""
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
