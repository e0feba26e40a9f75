"""
Invoice Computation
Totals and balances for invoices, plus drafting an invoice from a project.

Amounts must be finite, non-negative numbers. Bad input raises
InvalidAmountError instead of being coerced to 0, so a typo never turns
into a silently wrong total.
"""

import logging
import math
import random
import uuid
from dataclasses import dataclass
from datetime import date
from numbers import Real
from typing import Iterable, List, Optional, Sequence

from rapidfuzz import fuzz

from omnitrack.engine.metrics import project_paid
from omnitrack.models import Client, InvoiceItem, Party, Payment, Profile, Project, SavedInvoice

logger = logging.getLogger(__name__)

SERVICES = ('Photography', 'Cinematography', 'Drone', 'Editing', 'Custom')
DURATIONS = (
    '1 Hour', '2 Hours', '3 Hours', '4 Hours', '5 Hours', '6 Hours', '8 Hours',
    '1 Day', '2 Days', '3 Days', 'Project Based',
)
DEFAULT_COMPANY = Party(
    name='Moment Chronicles',
    address='Kamarpara, Uttara, Dhaka',
    email='momentchronicles@gmail.com',
    phone='01768831886',
)
NUMBER_PREFIX = 'MC-'
CLIENT_MATCH_THRESHOLD = 90


class InvalidAmountError(ValueError):
    """A monetary amount was negative, NaN, infinite or not a number at all."""


@dataclass
class InvoiceTotals:
    total: float
    paid: float

    @property
    def balance_due(self) -> float:
        return balance_due(self.total, self.paid)


def validate_amount(value, what: str = 'amount') -> float:
    if isinstance(value, bool) or not isinstance(value, Real):
        raise InvalidAmountError(f"{what} must be a number (got {value!r})")
    amount = float(value)
    if math.isnan(amount) or math.isinf(amount):
        raise InvalidAmountError(f"{what} must be finite (got {value!r})")
    if amount < 0:
        raise InvalidAmountError(f"{what} must not be negative (got {value!r})")
    return amount


def total(items: Iterable[InvoiceItem]) -> float:
    """Sum of line amounts."""
    return sum(validate_amount(item.amount, f"amount of '{item.description}'") for item in items)


def paid_from_payments(payments: Iterable[Payment]) -> float:
    return sum(validate_amount(p.amount, 'payment amount') for p in payments)


def balance_due(total_amount: float, paid: float) -> float:
    """total - paid. Negative means the client overpaid; it is not clamped."""
    return validate_amount(total_amount, 'total') - validate_amount(paid, 'paid')


def summarize(invoice: SavedInvoice) -> InvoiceTotals:
    return InvoiceTotals(total=total(invoice.items), paid=validate_amount(invoice.paid, 'paid'))


# =============================================================================
# DRAFTING
# =============================================================================

def company_from_profile(profile: Optional[Profile]) -> Party:
    """Issuer block: the studio profile where filled in, the default studio otherwise."""
    if profile is None:
        return Party(**vars(DEFAULT_COMPANY))
    return Party(
        name=profile.studio_name or DEFAULT_COMPANY.name,
        address=DEFAULT_COMPANY.address,
        email=profile.email or DEFAULT_COMPANY.email,
        phone=profile.phone or DEFAULT_COMPANY.phone,
    )


def find_client(name: str, clients: Sequence[Client], threshold: int = CLIENT_MATCH_THRESHOLD) -> Optional[Client]:
    """Exact name match first, then the best fuzzy match scoring at least threshold."""
    if not name:
        return None
    for client in clients:
        if client.name == name:
            return client

    best_match = None
    best_score = 0
    for client in clients:
        score = fuzz.ratio(name.lower(), client.name.lower())
        if score > best_score:
            best_score = score
            best_match = client

    if best_score >= threshold:
        logger.debug(f"find_client: '{name}' matched '{best_match.name}' (score {best_score:.0f})")
        return best_match
    return None


def draft_from_project(project: Project, clients: Sequence[Client], company: Party,
                       today: Optional[date] = None) -> SavedInvoice:
    """One line for the full package price, billed to the project's client."""
    today = today or date.today()
    client = find_client(project.client, clients)
    recipient = Party(
        name=client.name if client else project.client,
        email=(client.email or '') if client else '',
        phone=(client.phone or '') if client else (project.client_phone or ''),
        address=(client.address or '') if client else '',
    )
    items = [InvoiceItem(id='1', description=SERVICES[0], amount=project.total_value, schedule='')]
    paid = project_paid(project)

    return SavedInvoice(
        number=f"{NUMBER_PREFIX}{(project.id or '')[:5].upper()}",
        date=today.isoformat(),
        time='12:00',
        recipient=recipient,
        company_info=company,
        items=items,
        paid=paid,
        total=total(items),
        project_id=project.id,
    )


def draft_manual(company: Party, today: Optional[date] = None, rng: Optional[random.Random] = None) -> SavedInvoice:
    """A blank custom invoice with a random MC-CUST-NNNN number."""
    today = today or date.today()
    rng = rng or random.Random()
    return SavedInvoice(
        number=f"{NUMBER_PREFIX}CUST-{rng.randint(1000, 9999)}",
        date=today.isoformat(),
        time='10:00',
        company_info=company,
        items=[InvoiceItem(id=str(uuid.uuid4()), description='', amount=0.0, schedule='')],
    )


def lines(invoice: SavedInvoice) -> List[str]:
    """Plain-text rendering used by the terminal front end."""
    totals = summarize(invoice)
    out = [
        f"Invoice {invoice.number}  {invoice.date} {invoice.time}",
        f"From: {invoice.company_info.name}  {invoice.company_info.phone}",
        f"To:   {invoice.recipient.name}  {invoice.recipient.phone}",
        "",
    ]
    for item in invoice.items:
        schedule = f" ({item.schedule})" if item.schedule else ''
        label = f"{item.description}{schedule}"
        out.append(f"  {label:<30} {item.amount:>14,.2f}")
    out += [
        "",
        f"  {'Total':<30} {totals.total:>14,.2f}",
        f"  {'Paid':<30} {totals.paid:>14,.2f}",
        f"  {'Balance due':<30} {totals.balance_due:>14,.2f}",
    ]
    return out
