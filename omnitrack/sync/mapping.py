"""
Row <-> record mapping for every collection.

Remote rows arrive as dicts keyed by column name. Each collection has an explicit
normalizer that reads its columns one by one, applies defaults (a missing payments
list becomes [], a null amount becomes 0) and returns a typed record. The matching
serializer is the exact inverse and is used by every write path.

Renamed fields (attribute -> column):
    Profile.logo_reference  -> logo_url
    Project.total_value     -> total_value
    LifeEvent.client_name   -> client_name
    LifeEvent.client_phone  -> client_phone
    Professional.daily_rate -> daily_rate
    SavedInvoice.company_info -> company_info
"""

import math
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, List, Optional

from omnitrack.models import (
    DEFAULT_LOGO,
    Client,
    InvoiceItem,
    LifeEvent,
    Party,
    Payment,
    Professional,
    Profile,
    Project,
    SavedInvoice,
    SavingsGoal,
    Task,
    Transaction,
)

# Internal attribute -> remote column, for the fields whose names differ or that
# the profile write path must translate
PROFILE_COLUMN_MAP = {
    'owner_name': 'owner_name',
    'studio_name': 'studio_name',
    'email': 'email',
    'phone': 'phone',
    'role': 'role',
    'logo_reference': 'logo_url',
}


# =============================================================================
# FIELD HELPERS
# =============================================================================

def to_amount(value: Any) -> float:
    """Absent amounts are 0. Anything present must parse as a finite number."""
    if value is None or value == '':
        return 0.0
    if isinstance(value, bool):
        raise ValueError(f"Invalid amount: {value!r}")
    try:
        amount = float(Decimal(str(value)))
    except (InvalidOperation, ValueError):
        raise ValueError(f"Invalid amount: {value!r}")
    if math.isnan(amount) or math.isinf(amount):
        raise ValueError(f"Invalid amount: {value!r}")
    return amount


def to_iso_date(value: Any) -> str:
    """Dates travel as ISO calendar strings; driver date objects are converted."""
    if value is None:
        return ''
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def _text(value: Any, default: str = '') -> str:
    return default if value is None else str(value)


def _optional_text(value: Any) -> Optional[str]:
    if value is None or value == '':
        return None
    return str(value)


def _id(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def _time(value: Any, default: str) -> str:
    if value is None or value == '':
        return default
    if hasattr(value, 'strftime'):
        return value.strftime('%H:%M')
    return str(value)


# =============================================================================
# PROFILE
# =============================================================================

def normalize_profile(row: Dict[str, Any]) -> Profile:
    return Profile(
        owner_name=_text(row.get('owner_name')),
        studio_name=_text(row.get('studio_name')),
        email=_text(row.get('email')),
        phone=_text(row.get('phone')),
        role=row.get('role') or 'Studio Owner',
        logo_reference=row.get('logo_url') or DEFAULT_LOGO,
    )


def profile_to_row(profile: Profile) -> Dict[str, Any]:
    logo = None if profile.logo_reference == DEFAULT_LOGO else profile.logo_reference
    return {
        'owner_name': profile.owner_name,
        'studio_name': profile.studio_name,
        'email': profile.email,
        'phone': profile.phone,
        'role': profile.role,
        'logo_url': logo,
    }


def profile_updates_to_row(updates: Dict[str, Any]) -> Dict[str, Any]:
    """Translate a partial profile update (attribute names) to remote columns."""
    invalid = set(updates) - set(PROFILE_COLUMN_MAP)
    if invalid:
        raise ValueError(f"Invalid profile fields: {invalid}")
    row = {PROFILE_COLUMN_MAP[k]: v for k, v in updates.items()}
    if row.get('logo_url') == DEFAULT_LOGO:
        row['logo_url'] = None
    return row


# =============================================================================
# PROJECTS
# =============================================================================

def normalize_payment(raw: Dict[str, Any]) -> Payment:
    return Payment(
        id=_id(raw.get('id')),
        amount=to_amount(raw.get('amount')),
        date=to_iso_date(raw.get('date')),
        method=raw.get('method') or 'CASH',
        label=_text(raw.get('label')),
    )


def payment_to_dict(payment: Payment) -> Dict[str, Any]:
    return {
        'id': payment.id,
        'amount': payment.amount,
        'date': payment.date,
        'method': payment.method,
        'label': payment.label,
    }


def normalize_project(row: Dict[str, Any]) -> Project:
    return Project(
        id=_id(row.get('id')),
        title=_text(row.get('title')),
        client=_text(row.get('client')),
        client_phone=_optional_text(row.get('client_phone')),
        location=_optional_text(row.get('location')),
        type=row.get('type') or 'PHOTO',
        status=row.get('status') or 'QUOTED',
        total_value=to_amount(row.get('total_value')),
        payments=[normalize_payment(p) for p in (row.get('payments') or [])],
        date=to_iso_date(row.get('date')) or None,
    )


def project_to_row(project: Project) -> Dict[str, Any]:
    return {
        'id': project.id,
        'title': project.title,
        'client': project.client,
        'client_phone': project.client_phone,
        'location': project.location,
        'type': project.type,
        'status': project.status,
        'total_value': project.total_value,
        'payments': [payment_to_dict(p) for p in project.payments],
        'date': project.date,
    }


# =============================================================================
# LEDGER
# =============================================================================

def normalize_transaction(row: Dict[str, Any]) -> Transaction:
    return Transaction(
        id=_id(row.get('id')),
        amount=to_amount(row.get('amount')),
        type=_text(row.get('type')).upper(),
        category=row.get('category') or 'Other',
        date=to_iso_date(row.get('date')),
        description=_text(row.get('description')),
        currency=row.get('currency') or 'BDT',
        project_id=_id(row.get('project_id')),
    )


def transaction_to_row(transaction: Transaction) -> Dict[str, Any]:
    return {
        'id': transaction.id,
        'amount': transaction.amount,
        'type': transaction.type,
        'category': transaction.category,
        'date': transaction.date,
        'description': transaction.description,
        'currency': transaction.currency,
        'project_id': transaction.project_id,
    }


# =============================================================================
# TASKS / EVENTS
# =============================================================================

def normalize_task(row: Dict[str, Any]) -> Task:
    return Task(
        id=_id(row.get('id')),
        title=_text(row.get('title')),
        deadline=to_iso_date(row.get('deadline')),
        status=row.get('status') or 'PENDING',
        priority=row.get('priority') or 'MEDIUM',
    )


def task_to_row(task: Task) -> Dict[str, Any]:
    return {
        'id': task.id,
        'title': task.title,
        'deadline': task.deadline or None,
        'status': task.status,
        'priority': task.priority,
    }


def normalize_event(row: Dict[str, Any]) -> LifeEvent:
    return LifeEvent(
        id=_id(row.get('id')),
        title=_text(row.get('title')),
        date=to_iso_date(row.get('date')),
        time=_time(row.get('time'), '12:00'),
        category=row.get('category') or 'Portrait',
        description=_text(row.get('description')),
        client_name=_optional_text(row.get('client_name')),
        client_phone=_optional_text(row.get('client_phone')),
        location=_optional_text(row.get('location')),
    )


def event_to_row(event: LifeEvent) -> Dict[str, Any]:
    return {
        'id': event.id,
        'title': event.title,
        'date': event.date,
        'time': event.time,
        'category': event.category,
        'description': event.description,
        'client_name': event.client_name,
        'client_phone': event.client_phone,
        'location': event.location,
    }


# =============================================================================
# PEOPLE
# =============================================================================

def normalize_client(row: Dict[str, Any]) -> Client:
    return Client(
        id=_id(row.get('id')),
        name=_text(row.get('name')),
        phone=_text(row.get('phone')),
        email=_optional_text(row.get('email')),
        social=_optional_text(row.get('social')),
        address=_optional_text(row.get('address')),
        category=row.get('category') or 'LEAD',
    )


def client_to_row(client: Client) -> Dict[str, Any]:
    return {
        'id': client.id,
        'name': client.name,
        'phone': client.phone,
        'email': client.email,
        'social': client.social,
        'address': client.address,
        'category': client.category,
    }


def normalize_professional(row: Dict[str, Any]) -> Professional:
    return Professional(
        id=_id(row.get('id')),
        name=_text(row.get('name')),
        role=row.get('role') or 'Photographer',
        phone=_text(row.get('phone')),
        daily_rate=to_amount(row.get('daily_rate')),
        portfolio=_optional_text(row.get('portfolio')),
        location=_optional_text(row.get('location')),
    )


def professional_to_row(professional: Professional) -> Dict[str, Any]:
    return {
        'id': professional.id,
        'name': professional.name,
        'role': professional.role,
        'phone': professional.phone,
        'daily_rate': professional.daily_rate,
        'portfolio': professional.portfolio,
        'location': professional.location,
    }


# =============================================================================
# INVOICES / SAVINGS
# =============================================================================

def _party(raw: Optional[Dict[str, Any]]) -> Party:
    raw = raw or {}
    return Party(
        name=_text(raw.get('name')),
        email=_text(raw.get('email')),
        phone=_text(raw.get('phone')),
        address=_text(raw.get('address')),
    )


def _party_to_dict(party: Party) -> Dict[str, str]:
    return {'name': party.name, 'email': party.email, 'phone': party.phone, 'address': party.address}


def normalize_invoice_item(raw: Dict[str, Any]) -> InvoiceItem:
    return InvoiceItem(
        id=_id(raw.get('id')),
        description=_text(raw.get('description')),
        schedule=_text(raw.get('schedule')),
        amount=to_amount(raw.get('amount')),
    )


def normalize_invoice(row: Dict[str, Any]) -> SavedInvoice:
    return SavedInvoice(
        id=_id(row.get('id')),
        number=_text(row.get('number')),
        date=to_iso_date(row.get('date')),
        time=_time(row.get('time'), '12:00'),
        recipient=_party(row.get('recipient')),
        company_info=_party(row.get('company_info')),
        items=[normalize_invoice_item(i) for i in (row.get('items') or [])],
        paid=to_amount(row.get('paid')),
        total=to_amount(row.get('total')),
        project_id=_id(row.get('project_id')),
    )


def invoice_to_row(invoice: SavedInvoice) -> Dict[str, Any]:
    return {
        'id': invoice.id,
        'number': invoice.number,
        'date': invoice.date,
        'time': invoice.time,
        'recipient': _party_to_dict(invoice.recipient),
        'company_info': _party_to_dict(invoice.company_info),
        'items': [
            {'id': i.id, 'description': i.description, 'schedule': i.schedule, 'amount': i.amount}
            for i in invoice.items
        ],
        'paid': invoice.paid,
        'total': invoice.total,
        'project_id': invoice.project_id,
    }


def normalize_savings_goal(row: Dict[str, Any]) -> SavingsGoal:
    return SavingsGoal(
        id=_id(row.get('id')),
        name=_text(row.get('name')),
        target=to_amount(row.get('target')),
        current=to_amount(row.get('current')),
        category=row.get('category') or 'Gear',
    )


def savings_goal_to_row(goal: SavingsGoal) -> Dict[str, Any]:
    return {
        'id': goal.id,
        'name': goal.name,
        'target': goal.target,
        'current': goal.current,
        'category': goal.category,
    }


# Keys match Snapshot attribute names and omnitrack.db.store.COLLECTIONS
NORMALIZERS: Dict[str, Callable[[Dict[str, Any]], Any]] = {
    'projects': normalize_project,
    'transactions': normalize_transaction,
    'tasks': normalize_task,
    'events': normalize_event,
    'clients': normalize_client,
    'professionals': normalize_professional,
    'invoices': normalize_invoice,
    'savings': normalize_savings_goal,
}

SERIALIZERS: Dict[str, Callable[[Any], Dict[str, Any]]] = {
    'projects': project_to_row,
    'transactions': transaction_to_row,
    'tasks': task_to_row,
    'events': event_to_row,
    'clients': client_to_row,
    'professionals': professional_to_row,
    'invoices': invoice_to_row,
    'savings': savings_goal_to_row,
}


def normalize_rows(collection: str, rows: List[Dict[str, Any]]) -> List[Any]:
    """Normalize a whole result set. An empty or null result set becomes []."""
    normalizer = NORMALIZERS[collection]
    return [normalizer(row) for row in (rows or [])]
