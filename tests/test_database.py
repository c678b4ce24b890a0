"""
Tests for the pooled connection helpers, with the psycopg2 pool mocked out.
"""
from unittest.mock import MagicMock, patch

import pytest

from flights_api import database
from flights_api.database import AIRPORT, CDD, DataSourceUnavailable, fetch_all, get_connection


@pytest.fixture
def pool():
    mock_pool = MagicMock()
    with patch.dict(database._pools, {CDD: mock_pool, AIRPORT: mock_pool}, clear=True):
        yield mock_pool


def test_query_without_pool_is_unavailable():
    with patch.dict(database._pools, {}, clear=True):
        with pytest.raises(DataSourceUnavailable):
            fetch_all("SELECT 1")


def test_connection_commits_and_is_returned(pool):
    conn = pool.getconn.return_value
    with get_connection(AIRPORT) as c:
        assert c is conn
    conn.commit.assert_called_once()
    pool.putconn.assert_called_once_with(conn)


def test_connection_rolls_back_on_error(pool):
    conn = pool.getconn.return_value
    with pytest.raises(RuntimeError):
        with get_connection() as c:
            raise RuntimeError("boom")
    conn.rollback.assert_called_once()
    conn.commit.assert_not_called()
    pool.putconn.assert_called_once_with(conn)


def test_fetch_all_returns_plain_dicts(pool):
    cursor = pool.getconn.return_value.cursor.return_value.__enter__.return_value
    cursor.fetchall.return_value = [{"pnr": "ABC123"}]
    assert fetch_all("SELECT pnr FROM t WHERE x = %(x)s", {"x": 1}) == [{"pnr": "ABC123"}]
    cursor.execute.assert_called_once_with("SELECT pnr FROM t WHERE x = %(x)s", {"x": 1})


def test_init_pool_shares_one_pool_when_dsns_match():
    with patch.dict(database._pools, {}, clear=True), \
         patch.object(database.settings, "airport_db_dsn", ""), \
         patch("flights_api.database.ThreadedConnectionPool") as mock_pool_cls:
        database.init_pool()
        assert mock_pool_cls.call_count == 1
        assert database._pools[CDD] is database._pools[AIRPORT]
