"""
Unit tests for the remote store client (omnitrack/db/store.py).

Strategy: patch omnitrack.db.store.get_db_cursor with a contextmanager that
yields a MagicMock cursor. Row-level psycopg2 errors must come back as a
QueryResult; connection-level errors must propagate.
"""

import pytest
from contextlib import contextmanager
from unittest.mock import MagicMock, patch

import psycopg2
from psycopg2.extras import Json

from omnitrack.db.store import (
    COLLECTIONS,
    MULTIPLE_ROWS,
    NOT_FOUND,
    RemoteStore,
    _WRITABLE_COLUMNS,
    _validate_columns,
)

ACCOUNT = 'acct-1'


def make_cursor(fetchone=None, fetchall=None, rowcount=1):
    cur = MagicMock()
    cur.fetchone.return_value = fetchone
    cur.fetchall.return_value = fetchall if fetchall is not None else []
    cur.rowcount = rowcount
    return cur


def cursor_patch(cur):
    @contextmanager
    def _mock_ctx():
        yield cur

    return patch('omnitrack.db.store.get_db_cursor', _mock_ctx)


@pytest.fixture
def store():
    return RemoteStore()


# ---------------------------------------------------------------------------
# _validate_columns
# ---------------------------------------------------------------------------

def test_validate_columns_valid_passes():
    _validate_columns({'title': 'X', 'status': 'BOOKED'}, _WRITABLE_COLUMNS['projects'], 'projects')


def test_validate_columns_invalid_raises():
    with pytest.raises(ValueError, match='tasks'):
        _validate_columns({'title': 'X', 'DROP TABLE': 'x'}, _WRITABLE_COLUMNS['tasks'], 'tasks')


def test_eight_collections_registered():
    assert set(COLLECTIONS) == {
        'projects', 'transactions', 'tasks', 'events', 'clients',
        'professionals', 'invoices', 'savings',
    }


# ---------------------------------------------------------------------------
# fetch_profile
# ---------------------------------------------------------------------------

def test_fetch_profile_single_row(store):
    cur = make_cursor(fetchall=[{'id': ACCOUNT, 'owner_name': 'Rafi'}])
    with cursor_patch(cur):
        result = store.fetch_profile(ACCOUNT)
    assert result.ok
    assert result.data['owner_name'] == 'Rafi'
    assert cur.execute.call_args[0][1] == (ACCOUNT,)


def test_fetch_profile_no_row_is_not_found(store):
    with cursor_patch(make_cursor(fetchall=[])):
        result = store.fetch_profile(ACCOUNT)
    assert not result.ok
    assert result.error.code == NOT_FOUND


def test_fetch_profile_two_rows_is_multiple_rows(store):
    with cursor_patch(make_cursor(fetchall=[{'id': 1}, {'id': 2}])):
        result = store.fetch_profile(ACCOUNT)
    assert result.error.code == MULTIPLE_ROWS


# ---------------------------------------------------------------------------
# fetch_collection
# ---------------------------------------------------------------------------

def test_fetch_collection_filters_by_owner_and_orders(store):
    cur = make_cursor(fetchall=[{'id': 't1'}])
    with cursor_patch(cur):
        result = store.fetch_collection('transactions', ACCOUNT)
    sql, params = cur.execute.call_args[0]
    assert 'FROM transactions' in sql
    assert 'user_id = %s' in sql
    assert 'ORDER BY date DESC' in sql
    assert params == (ACCOUNT,)
    assert result.data == [{'id': 't1'}]


def test_fetch_events_reads_life_events_ascending(store):
    cur = make_cursor()
    with cursor_patch(cur):
        store.fetch_collection('events', ACCOUNT)
    sql = cur.execute.call_args[0][0]
    assert 'FROM life_events' in sql
    assert 'ORDER BY date ASC' in sql


def test_fetch_collection_unknown_raises(store):
    with pytest.raises(ValueError, match='Unknown collection'):
        store.fetch_collection('contacts', ACCOUNT)


def test_row_level_error_becomes_query_error(store):
    cur = make_cursor()
    cur.execute.side_effect = psycopg2.ProgrammingError('relation "tasks" does not exist')
    with cursor_patch(cur):
        result = store.fetch_collection('tasks', ACCOUNT)
    assert not result.ok
    assert result.data is None
    assert 'does not exist' in result.error.message


def test_connection_error_propagates(store):
    cur = make_cursor()
    cur.execute.side_effect = psycopg2.OperationalError('server closed the connection')
    with cursor_patch(cur), pytest.raises(psycopg2.OperationalError):
        store.fetch_collection('tasks', ACCOUNT)


# ---------------------------------------------------------------------------
# insert / update / delete
# ---------------------------------------------------------------------------

def test_insert_rows_adds_owner_and_wraps_json(store):
    cur = make_cursor(fetchone={'id': 'p1', 'title': 'Wedding'})
    row = {'id': 'p1', 'title': 'Wedding', 'payments': [{'amount': 100}]}
    with cursor_patch(cur):
        result = store.insert_rows('projects', ACCOUNT, [row])
    sql, values = cur.execute.call_args[0]
    assert 'INSERT INTO projects' in sql
    assert 'RETURNING *' in sql
    assert values['user_id'] == ACCOUNT
    assert isinstance(values['payments'], Json)
    assert result.data == [{'id': 'p1', 'title': 'Wedding'}]


def test_insert_rows_rejects_unknown_column(store):
    with cursor_patch(make_cursor()), pytest.raises(ValueError):
        store.insert_rows('tasks', ACCOUNT, [{'title': 'x', 'user_id': 'someone-else'}])


def test_integrity_error_on_insert_is_structured(store):
    cur = make_cursor()
    cur.execute.side_effect = psycopg2.IntegrityError('duplicate key')
    with cursor_patch(cur):
        result = store.insert_rows('tasks', ACCOUNT, [{'id': 't1', 'title': 'x'}])
    assert result.error is not None


def test_update_row_scopes_to_account(store):
    cur = make_cursor(fetchone={'id': 't1', 'status': 'FINISHED'})
    with cursor_patch(cur):
        result = store.update_row('tasks', ACCOUNT, 't1', {'id': 't1', 'status': 'FINISHED'})
    sql, params = cur.execute.call_args[0]
    assert 'UPDATE tasks' in sql
    assert 'status = %(status)s' in sql
    assert 'id = %(id)s' not in sql
    assert params['_row_id'] == 't1'
    assert params['_account_id'] == ACCOUNT
    assert result.data['status'] == 'FINISHED'


def test_update_row_missing_is_not_found(store):
    with cursor_patch(make_cursor(fetchone=None)):
        result = store.update_row('tasks', ACCOUNT, 'nope', {'status': 'FINISHED'})
    assert result.error.code == NOT_FOUND


def test_update_row_empty_is_error(store):
    result = store.update_row('tasks', ACCOUNT, 't1', {'id': 't1'})
    assert result.error.code == 'empty_update'


def test_delete_row_returns_rowcount(store):
    cur = make_cursor(rowcount=1)
    with cursor_patch(cur):
        result = store.delete_row('savings', ACCOUNT, 'g1')
    assert result.data == 1
    assert 'DELETE FROM savings_goals' in cur.execute.call_args[0][0]
    assert cur.execute.call_args[0][1] == ('g1', ACCOUNT)


# ---------------------------------------------------------------------------
# profile writes
# ---------------------------------------------------------------------------

def test_insert_profile_uses_account_as_id(store):
    cur = make_cursor(fetchone={'id': ACCOUNT, 'owner_name': 'Rafi'})
    with cursor_patch(cur):
        result = store.insert_profile(ACCOUNT, {'owner_name': 'Rafi', 'studio_name': 'MC'})
    values = cur.execute.call_args[0][1]
    assert values['id'] == ACCOUNT
    assert result.data['owner_name'] == 'Rafi'


def test_update_profile_rejects_unknown_column(store):
    with pytest.raises(ValueError, match='profile'):
        store.update_profile(ACCOUNT, {'is_admin': True})


def test_update_profile_missing_row_is_not_found(store):
    with cursor_patch(make_cursor(fetchone=None)):
        result = store.update_profile(ACCOUNT, {'logo_url': 'https://cdn/logo.png'})
    assert result.error.code == NOT_FOUND
