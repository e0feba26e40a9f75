"""
Unit tests for omnitrack/db/connection.py.
psycopg2.connect is patched; no database is contacted.
"""

from unittest.mock import patch

import psycopg2
import pytest
from psycopg2.extras import RealDictCursor

from omnitrack.db.connection import get_db_connection, get_db_cursor


@pytest.fixture
def conn():
    with patch("omnitrack.db.connection.psycopg2.connect") as connect:
        yield connect, connect.return_value


def test_connect_uses_timeout_and_application_name(conn):
    connect, _ = conn
    with get_db_connection():
        pass
    kwargs = connect.call_args[1]
    assert kwargs["application_name"] == "omnitrack"
    assert "connect_timeout" in kwargs


def test_commits_and_closes_on_success(conn):
    _, connection = conn
    with get_db_connection():
        pass
    connection.commit.assert_called_once()
    connection.rollback.assert_not_called()
    connection.close.assert_called_once()


def test_rolls_back_and_reraises_on_error(conn):
    _, connection = conn
    with pytest.raises(psycopg2.IntegrityError):
        with get_db_connection():
            raise psycopg2.IntegrityError("duplicate key")
    connection.rollback.assert_called_once()
    connection.commit.assert_not_called()
    connection.close.assert_called_once()


def test_cursor_is_dict_cursor_and_closed(conn):
    _, connection = conn
    with get_db_cursor() as cur:
        assert cur is connection.cursor.return_value
    connection.cursor.assert_called_once_with(cursor_factory=RealDictCursor)
    cur.close.assert_called_once()


def test_plain_cursor_when_requested(conn):
    _, connection = conn
    with get_db_cursor(dict_cursor=False):
        pass
    connection.cursor.assert_called_once_with(cursor_factory=None)
