"""
Remote Store Client
Row-level CRUD against the studio's hosted tables, always scoped to one account.

Row-level failures (bad column, constraint violation, missing singleton row) come
back as a QueryResult carrying a QueryError. Connection-level failures
(psycopg2.OperationalError / InterfaceError) are raised to the caller.
"""

import functools
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import psycopg2
from psycopg2.extras import Json

from omnitrack.db.connection import get_db_cursor

logger = logging.getLogger(__name__)

NOT_FOUND = 'not_found'
MULTIPLE_ROWS = 'multiple_rows'

# Row-level errors: the backend answered, but rejected or could not satisfy the query
_ROW_LEVEL_ERRORS = (
    psycopg2.ProgrammingError,
    psycopg2.DataError,
    psycopg2.IntegrityError,
    psycopg2.NotSupportedError,
)


@dataclass
class QueryError:
    code: str
    message: str = ''


@dataclass
class QueryResult:
    data: Any = None
    error: Optional[QueryError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class CollectionSpec:
    """Where a collection lives and how a full fetch orders it."""
    table: str
    order_by: str
    descending: bool


# Keys match Snapshot attribute names
COLLECTIONS: Dict[str, CollectionSpec] = {
    'projects': CollectionSpec('projects', 'created_at', descending=True),
    'transactions': CollectionSpec('transactions', 'date', descending=True),
    'tasks': CollectionSpec('tasks', 'created_at', descending=True),
    'events': CollectionSpec('life_events', 'date', descending=False),
    'clients': CollectionSpec('clients', 'name', descending=False),
    'professionals': CollectionSpec('professionals', 'name', descending=False),
    'invoices': CollectionSpec('invoices', 'created_at', descending=True),
    'savings': CollectionSpec('savings_goals', 'created_at', descending=True),
}

PROFILE_TABLE = 'profiles'
OWNER_COLUMN = 'user_id'

# Allowlists for dynamic INSERT / UPDATE statements; column names never come from user input directly
_WRITABLE_COLUMNS: Dict[str, set] = {
    'projects': {
        'id', 'title', 'client', 'client_phone', 'location', 'type', 'status',
        'total_value', 'payments', 'date',
    },
    'transactions': {
        'id', 'amount', 'type', 'category', 'date', 'description', 'currency', 'project_id',
    },
    'tasks': {'id', 'title', 'deadline', 'status', 'priority'},
    'events': {
        'id', 'title', 'date', 'time', 'category', 'description',
        'client_name', 'client_phone', 'location',
    },
    'clients': {'id', 'name', 'phone', 'email', 'social', 'address', 'category'},
    'professionals': {'id', 'name', 'role', 'phone', 'daily_rate', 'portfolio', 'location'},
    'invoices': {
        'id', 'number', 'date', 'time', 'recipient', 'company_info', 'items',
        'paid', 'total', 'project_id',
    },
    'savings': {'id', 'name', 'target', 'current', 'category'},
}
_PROFILE_COLUMNS = {'owner_name', 'studio_name', 'email', 'phone', 'role', 'logo_url'}


def _validate_columns(values: Dict[str, Any], allowed: set, entity: str) -> None:
    """Raise ValueError if any key in values is not an allowed column name."""
    invalid = set(values.keys()) - allowed
    if invalid:
        raise ValueError(f"Invalid {entity} fields: {invalid}")


def _spec(collection: str) -> CollectionSpec:
    try:
        return COLLECTIONS[collection]
    except KeyError:
        raise ValueError(f"Unknown collection '{collection}'. Choose from: {', '.join(COLLECTIONS)}")


def _adapt(row: Dict[str, Any]) -> Dict[str, Any]:
    """Wrap nested lists/dicts so psycopg2 sends them as jsonb."""
    return {k: Json(v) if isinstance(v, (dict, list)) else v for k, v in row.items()}


def _row_level(func):
    """Turn row-level database errors into a QueryResult instead of an exception."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except _ROW_LEVEL_ERRORS as exc:
            code = getattr(exc, 'pgcode', None) or type(exc).__name__
            logger.debug(f"{func.__name__}: row-level error {code}: {exc}")
            return QueryResult(error=QueryError(code=code, message=str(exc).strip()))

    return wrapper


class RemoteStore:
    """
    CRUD + ordered list queries for the eight collections and the profile record.
    Methods are blocking; the sync layer runs them in worker threads.
    """

    @_row_level
    def fetch_profile(self, account_id: str) -> QueryResult:
        """Select the profile by primary key, expecting at most one row."""
        with get_db_cursor() as cur:
            cur.execute(f"SELECT * FROM {PROFILE_TABLE} WHERE id = %s", (account_id,))
            rows = cur.fetchall()

        if not rows:
            return QueryResult(error=QueryError(NOT_FOUND, f"No profile for account {account_id}"))
        if len(rows) > 1:
            return QueryResult(error=QueryError(MULTIPLE_ROWS, f"{len(rows)} profiles for account {account_id}"))
        return QueryResult(data=dict(rows[0]))

    @_row_level
    def fetch_collection(self, collection: str, account_id: str) -> QueryResult:
        """Select every row of a collection owned by the account, in the collection's order."""
        spec = _spec(collection)
        direction = 'DESC' if spec.descending else 'ASC'

        with get_db_cursor() as cur:
            cur.execute(f"""
                SELECT * FROM {spec.table}
                WHERE {OWNER_COLUMN} = %s
                ORDER BY {spec.order_by} {direction}
            """, (account_id,))
            rows = cur.fetchall()

        logger.debug(f"fetch_collection: {collection} → {len(rows)} rows")
        return QueryResult(data=[dict(r) for r in rows])

    @_row_level
    def insert_rows(self, collection: str, account_id: str, rows: List[Dict[str, Any]]) -> QueryResult:
        """Insert one or more rows for the account. Returns the inserted rows."""
        spec = _spec(collection)
        inserted = []

        with get_db_cursor() as cur:
            for row in rows:
                _validate_columns(row, _WRITABLE_COLUMNS[collection], collection)
                values = _adapt(row)
                values[OWNER_COLUMN] = account_id
                columns = sorted(values)
                cur.execute(f"""
                    INSERT INTO {spec.table} ({', '.join(columns)})
                    VALUES ({', '.join(f'%({c})s' for c in columns)})
                    RETURNING *
                """, values)
                inserted.append(dict(cur.fetchone()))

        logger.info(f"Inserted {len(inserted)} {collection} row(s) for account {account_id}")
        return QueryResult(data=inserted)

    @_row_level
    def update_row(self, collection: str, account_id: str, row_id: str, updates: Dict[str, Any]) -> QueryResult:
        """Replace the given columns of one row. Returns the updated row."""
        spec = _spec(collection)
        updates = {k: v for k, v in updates.items() if k != 'id'}
        if not updates:
            return QueryResult(error=QueryError('empty_update', 'No fields to update'))

        # Guard: only known columns may appear in the SET clause
        _validate_columns(updates, _WRITABLE_COLUMNS[collection], collection)
        set_clause = ', '.join(f"{key} = %({key})s" for key in sorted(updates))

        params = _adapt(updates)
        params['_row_id'] = row_id
        params['_account_id'] = account_id

        with get_db_cursor() as cur:
            cur.execute(f"""
                UPDATE {spec.table}
                SET {set_clause}
                WHERE id = %(_row_id)s AND {OWNER_COLUMN} = %(_account_id)s
                RETURNING *
            """, params)
            row = cur.fetchone()

        if row is None:
            return QueryResult(error=QueryError(NOT_FOUND, f"{collection} row {row_id} not found"))
        logger.info(f"Updated {collection} row {row_id}: {sorted(updates)}")
        return QueryResult(data=dict(row))

    @_row_level
    def delete_row(self, collection: str, account_id: str, row_id: str) -> QueryResult:
        """Remove one row by id. data is the number of rows removed."""
        spec = _spec(collection)

        with get_db_cursor() as cur:
            cur.execute(f"""
                DELETE FROM {spec.table}
                WHERE id = %s AND {OWNER_COLUMN} = %s
            """, (row_id, account_id))
            count = cur.rowcount

        logger.info(f"Deleted {count} {collection} row(s) with id {row_id}")
        return QueryResult(data=count)

    @_row_level
    def insert_profile(self, account_id: str, row: Dict[str, Any]) -> QueryResult:
        """Create the profile record at account setup."""
        _validate_columns(row, _PROFILE_COLUMNS, 'profile')
        values = dict(row)
        values['id'] = account_id
        columns = sorted(values)

        with get_db_cursor() as cur:
            cur.execute(f"""
                INSERT INTO {PROFILE_TABLE} ({', '.join(columns)})
                VALUES ({', '.join(f'%({c})s' for c in columns)})
                RETURNING *
            """, values)
            created = cur.fetchone()

        logger.info(f"Created profile for account {account_id}")
        return QueryResult(data=dict(created))

    @_row_level
    def update_profile(self, account_id: str, updates: Dict[str, Any]) -> QueryResult:
        """Update explicit profile columns. Returns the updated row."""
        if not updates:
            return QueryResult(error=QueryError('empty_update', 'No fields to update'))

        _validate_columns(updates, _PROFILE_COLUMNS, 'profile')
        set_clause = ', '.join(f"{key} = %({key})s" for key in sorted(updates))
        params = dict(updates)
        params['_account_id'] = account_id

        with get_db_cursor() as cur:
            cur.execute(f"""
                UPDATE {PROFILE_TABLE}
                SET {set_clause}
                WHERE id = %(_account_id)s
                RETURNING *
            """, params)
            row = cur.fetchone()

        if row is None:
            return QueryResult(error=QueryError(NOT_FOUND, f"No profile for account {account_id}"))
        logger.info(f"Updated profile for account {account_id}: {sorted(updates)}")
        return QueryResult(data=dict(row))
