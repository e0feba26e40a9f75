"""
Database Connection Management
Handles connections to the hosted PostgreSQL backend with the context manager pattern.
Every call opens its own connection, so concurrent fetches running in worker
threads never share a connection.
"""

import psycopg2
from psycopg2.extras import RealDictCursor
from contextlib import contextmanager
import logging

from omnitrack.config import config

logger = logging.getLogger(__name__)

_APPLICATION_NAME = 'omnitrack'


@contextmanager
def get_db_connection():
    """
    Context manager for database connections.
    Commits on success, rolls back on error, and always closes the connection.

    Usage:
        with get_db_connection() as conn:
            cur = conn.cursor()
            cur.execute("SELECT * FROM projects WHERE user_id = %s", (account_id,))
            results = cur.fetchall()
    """
    conn = None
    try:
        conn = psycopg2.connect(
            config.DATABASE_URL,
            connect_timeout=config.DB_CONNECT_TIMEOUT,
            application_name=_APPLICATION_NAME,
        )
        logger.debug("Database connection established")
        yield conn
        conn.commit()
        logger.debug("Transaction committed")
    except Exception as e:
        if conn:
            conn.rollback()
            logger.error(f"Transaction rolled back due to error: {e}")
        raise
    finally:
        if conn:
            conn.close()
            logger.debug("Database connection closed")


@contextmanager
def get_db_cursor(dict_cursor=True):
    """
    Context manager for a database cursor.
    Returns RealDictCursor by default so rows arrive as dicts keyed by column name,
    which is the shape the sync mapping layer normalizes.

    Usage:
        with get_db_cursor() as cur:
            cur.execute("SELECT * FROM profiles WHERE id = %s", (account_id,))
            profile = cur.fetchone()
    """
    with get_db_connection() as conn:
        cursor_factory = RealDictCursor if dict_cursor else None
        cur = conn.cursor(cursor_factory=cursor_factory)
        try:
            yield cur
        finally:
            cur.close()
