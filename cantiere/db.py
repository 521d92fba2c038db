"""PostgreSQL connections for the analytics queries.

A single ThreadedConnectionPool is created on first use. Every borrowed
connection is checked with ``SELECT 1`` and replaced once if it is dead, so a
stale socket surfaces as an OperationalError that ``db_retry`` can handle.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from threading import Lock
from typing import Iterator

from psycopg2 import OperationalError
from psycopg2.extensions import connection as PGConnection
from psycopg2.pool import ThreadedConnectionPool

from .config import get_settings
from .retry import DB_RETRYABLE_ERRORS

logger = logging.getLogger(__name__)

_pool: ThreadedConnectionPool | None = None
_pool_lock = Lock()


def _ensure_connection_alive(conn: PGConnection) -> None:
    if conn.closed:
        msg = "La connessione al database è chiusa"
        raise OperationalError(msg)

    if not conn.autocommit:
        conn.rollback()

    with conn.cursor() as cur:
        cur.execute("SELECT 1")


def _checkout(pool: ThreadedConnectionPool) -> PGConnection:
    conn = pool.getconn()
    try:
        _ensure_connection_alive(conn)
    except DB_RETRYABLE_ERRORS as exc:
        logger.warning("Connessione al database non valida, ne richiedo una nuova: %s", exc)
        pool.putconn(conn, close=True)

        conn = pool.getconn()
        try:
            _ensure_connection_alive(conn)
        except DB_RETRYABLE_ERRORS:
            pool.putconn(conn, close=True)
            raise
    return conn


def _get_pool() -> ThreadedConnectionPool:
    global _pool
    if _pool is None:
        with _pool_lock:
            if _pool is None:
                settings = get_settings()
                if not settings.db_dsn:
                    msg = (
                        "La variabile d'ambiente DB_DSN non è impostata. "
                        "Impossibile leggere i dati dei cantieri."
                    )
                    raise RuntimeError(msg)

                logger.info(
                    "Inizializzazione del pool di connessioni (max %d)",
                    settings.db_pool_max_size,
                )
                _pool = ThreadedConnectionPool(
                    minconn=1,
                    maxconn=settings.db_pool_max_size,
                    dsn=settings.db_dsn,
                )
    return _pool


@contextmanager
def get_connection() -> Iterator[PGConnection]:
    """Borrow a checked connection and give it back on exit.

    A connection that raised inside the block is closed instead of reused.
    """
    pool = _get_pool()
    conn = _checkout(pool)
    try:
        yield conn
    except Exception:
        pool.putconn(conn, close=True)
        raise
    else:
        pool.putconn(conn)


def close_pool() -> None:
    global _pool
    if _pool is not None:
        _pool.closeall()
        _pool = None
