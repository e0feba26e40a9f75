"""
Unit tests for data models (omnitrack/models/__init__.py).
Pure Python, no DB, no mocking required.
"""

from omnitrack.models import (
    ACCOUNT_ACTIVE, ACCOUNT_INIT, ACCOUNT_RESET, BUDGET_CATEGORIES, DEFAULT_LOGO,
    AccountContext, Profile, Project, RefreshReport, SavedInvoice, Snapshot, Task,
    Transaction,
)


def test_profile_defaults_to_builtin_logo():
    assert Profile(owner_name='Rafi').logo_reference == DEFAULT_LOGO


def test_project_payments_not_shared_between_instances():
    a, b = Project(title='A'), Project(title='B')
    a.payments.append('x')
    assert b.payments == []


def test_transaction_defaults():
    t = Transaction(amount=500)
    assert t.type == 'EXPENSE'
    assert t.currency == 'BDT'
    assert t.project_id is None


def test_task_defaults():
    t = Task(title='Color grade')
    assert t.status == 'PENDING'
    assert t.priority == 'MEDIUM'


def test_saved_invoice_parties_are_separate_objects():
    inv = SavedInvoice()
    assert inv.recipient is not inv.company_info


def test_empty_snapshot():
    s = Snapshot()
    assert s.profile is None
    for name in ('projects', 'transactions', 'tasks', 'events', 'clients',
                 'professionals', 'invoices', 'savings', 'budgets'):
        assert getattr(s, name) == [], f"Expected {name} to be empty"


def test_budget_categories_fixed_list():
    assert BUDGET_CATEGORIES[0] == 'Gear Rental'
    assert len(BUDGET_CATEGORIES) == 8


def test_account_context_lifecycle():
    ctx = AccountContext()
    assert ctx.state == ACCOUNT_INIT
    assert not ctx.is_active

    ctx.activate('acct-1', 'tok')
    assert ctx.state == ACCOUNT_ACTIVE
    assert ctx.is_active

    ctx.reset()
    assert ctx.state == ACCOUNT_RESET
    assert ctx.account_id is None
    assert ctx.access_token is None
    assert not ctx.is_active


def test_refresh_report_defaults():
    report = RefreshReport()
    assert not report.skipped
    assert not report.degraded
    assert report.collections == {}
