"""
psycopg2 connection pools for the two read-only data sources.

    cdd      reservations: schedules and booked passengers
    airport  departure control: checked-in / boarded passengers

When no separate airport DSN is configured both names share one pool.
Repositories only ever call fetch_all.
"""
import logging
from contextlib import contextmanager

from psycopg2.extras import RealDictCursor
from psycopg2.pool import ThreadedConnectionPool

from flights_api.config import settings

logger = logging.getLogger("flights-api.db")

CDD = "cdd"
AIRPORT = "airport"

_pools: dict[str, ThreadedConnectionPool] = {}


class DataSourceUnavailable(RuntimeError):
    """Raised when a query is issued before its pool could be created."""


def init_pool():
    """Create one pool per distinct DSN. Safe to call twice."""
    if _pools:
        return
    dsns = {CDD: settings.cdd_db_dsn, AIRPORT: settings.airport_dsn}
    by_dsn: dict[str, ThreadedConnectionPool] = {}
    for name, dsn in dsns.items():
        if dsn not in by_dsn:
            by_dsn[dsn] = ThreadedConnectionPool(
                settings.db_pool_min, settings.db_pool_max, dsn=dsn
            )
        _pools[name] = by_dsn[dsn]
    logger.info("Connection pools ready: %s", ", ".join(sorted(_pools)))


def close_pool():
    closed = set()
    for pool in _pools.values():
        if id(pool) not in closed:
            pool.closeall()
            closed.add(id(pool))
    _pools.clear()


@contextmanager
def get_connection(source: str = CDD):
    """
    Borrow a pooled connection.
    Usage:
        with get_connection(AIRPORT) as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1")
    Rolls back on error, always returns the connection to the pool.
    """
    pool = _pools.get(source)
    if pool is None:
        raise DataSourceUnavailable(f"Data source '{source}' is not initialised")
    conn = pool.getconn()
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        pool.putconn(conn)


def fetch_all(query: str, params: dict | None = None, source: str = CDD) -> list[dict]:
    with get_connection(source) as conn:
        with conn.cursor(cursor_factory=RealDictCursor) as cur:
            cur.execute(query, params)
            return [dict(r) for r in cur.fetchall()]

