"""
Data Models
Dataclasses for all studio entities. These are pure Python objects, no database logic.
Dates are kept as ISO calendar strings ("YYYY-MM-DD") because every comparison the
aggregation layer makes is a plain string comparison on that format.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional


# Value sets
PROJECT_TYPES = ('PHOTO', 'VIDEO', 'BOTH')
PROJECT_STATUSES = ('QUOTED', 'BOOKED', 'COMPLETED', 'PAID')
TRANSACTION_TYPES = ('INCOME', 'EXPENSE')
TASK_STATUSES = ('PENDING', 'PROGRESS', 'FINISHED')
TASK_PRIORITIES = ('LOW', 'MEDIUM', 'HIGH')
CLIENT_CATEGORIES = ('LEAD', 'ACTIVE', 'PREVIOUS')
PROFESSIONAL_ROLES = ('Photographer', 'Cinematographer', 'Editor', 'Assistant')
PAYMENT_METHODS = ('CASH', 'BANK', 'ONLINE')
LANGUAGES = ('EN', 'BN')

TRANSACTION_CATEGORIES = ('Shoot', 'Videography', 'Editing', 'Gear', 'Team', 'Travel', 'Other')
BUDGET_CATEGORIES = (
    'Gear Rental', 'Assistant', 'Travel', 'Props', 'Marketing', 'Software', 'Studio Rent', 'Other',
)
EVENT_CATEGORIES = ('Wedding', 'Portrait', 'Commercial', 'Editorial', 'Meeting', 'Travel', 'Editing')

DEFAULT_LOGO = 'builtin:moment-chronicles'


@dataclass
class Profile:
    """Singleton studio profile for an account"""
    owner_name: str = ''
    studio_name: str = ''
    email: str = ''
    phone: str = ''
    role: str = 'Studio Owner'
    logo_reference: str = DEFAULT_LOGO


@dataclass
class Payment:
    amount: float = 0.0
    date: str = ''
    method: str = 'CASH'
    label: str = ''
    id: Optional[str] = None


@dataclass
class Project:
    """A booked (or quoted) shoot and its payment history"""
    id: Optional[str] = None
    title: str = ''
    client: str = ''
    client_phone: Optional[str] = None
    location: Optional[str] = None
    type: str = 'PHOTO'
    status: str = 'QUOTED'
    total_value: float = 0.0
    payments: List[Payment] = field(default_factory=list)
    date: Optional[str] = None


@dataclass
class Transaction:
    """Ledger entry"""
    id: Optional[str] = None
    amount: float = 0.0
    type: str = 'EXPENSE'
    category: str = 'Other'
    date: str = ''
    description: str = ''
    currency: str = 'BDT'
    project_id: Optional[str] = None


@dataclass
class Task:
    id: Optional[str] = None
    title: str = ''
    deadline: str = ''
    status: str = 'PENDING'
    priority: str = 'MEDIUM'


@dataclass
class LifeEvent:
    """Calendar entry (shoot date, meeting, delivery)"""
    id: Optional[str] = None
    title: str = ''
    date: str = ''
    time: str = '12:00'
    category: str = 'Portrait'
    description: str = ''
    client_name: Optional[str] = None
    client_phone: Optional[str] = None
    location: Optional[str] = None


@dataclass
class Client:
    id: Optional[str] = None
    name: str = ''
    phone: str = ''
    email: Optional[str] = None
    social: Optional[str] = None
    address: Optional[str] = None
    category: str = 'LEAD'


@dataclass
class Professional:
    """Crew member available for hire"""
    id: Optional[str] = None
    name: str = ''
    role: str = 'Photographer'
    phone: str = ''
    daily_rate: float = 0.0
    portfolio: Optional[str] = None
    location: Optional[str] = None


@dataclass
class SavingsGoal:
    """Manually funded reserve; current is never derived from the ledger"""
    id: Optional[str] = None
    name: str = ''
    target: float = 0.0
    current: float = 0.0
    category: str = 'Gear'


@dataclass
class Budget:
    """Local-only spending limit. spent is recomputed from transactions on read."""
    category: str = ''
    limit: float = 0.0
    spent: float = 0.0


@dataclass
class InvoiceItem:
    description: str = ''
    amount: float = 0.0
    schedule: str = ''
    id: Optional[str] = None


@dataclass
class Party:
    """Name and contact block printed on an invoice (recipient or issuing company)"""
    name: str = ''
    email: str = ''
    phone: str = ''
    address: str = ''


@dataclass
class SavedInvoice:
    id: Optional[str] = None
    number: str = ''
    date: str = ''
    time: str = '12:00'
    recipient: Party = field(default_factory=Party)
    company_info: Party = field(default_factory=Party)
    items: List[InvoiceItem] = field(default_factory=list)
    paid: float = 0.0
    total: float = 0.0
    project_id: Optional[str] = None


@dataclass
class Snapshot:
    """Complete in-memory view of one account's collections at a point in time."""
    profile: Optional[Profile] = None
    projects: List[Project] = field(default_factory=list)
    transactions: List[Transaction] = field(default_factory=list)
    tasks: List[Task] = field(default_factory=list)
    events: List[LifeEvent] = field(default_factory=list)
    clients: List[Client] = field(default_factory=list)
    professionals: List[Professional] = field(default_factory=list)
    invoices: List[SavedInvoice] = field(default_factory=list)
    savings: List[SavingsGoal] = field(default_factory=list)
    budgets: List[Budget] = field(default_factory=list)


# Account lifecycle states
ACCOUNT_INIT = 'init'
ACCOUNT_ACTIVE = 'active'
ACCOUNT_RESET = 'reset'


@dataclass
class AccountContext:
    """The signed-in account the controller is synchronizing: init -> active -> reset."""
    account_id: Optional[str] = None
    state: str = ACCOUNT_INIT
    access_token: Optional[str] = None

    def activate(self, account_id: str, access_token: Optional[str] = None) -> None:
        self.account_id = account_id
        self.access_token = access_token
        self.state = ACCOUNT_ACTIVE

    def reset(self) -> None:
        self.account_id = None
        self.access_token = None
        self.state = ACCOUNT_RESET

    @property
    def is_active(self) -> bool:
        return self.state == ACCOUNT_ACTIVE and self.account_id is not None


@dataclass
class Session:
    """Authenticated session as returned by the hosted auth endpoint"""
    user_id: str
    access_token: str = ''
    refresh_token: str = ''
    expires_at: Optional[float] = None
    email: Optional[str] = None


@dataclass
class CollectionStatus:
    """Per-collection outcome of one refresh cycle"""
    name: str
    updated: bool = False
    error: Optional[str] = None


@dataclass
class RefreshReport:
    """Summary of one refresh cycle. skipped means another cycle was already running."""
    skipped: bool = False
    degraded: bool = False
    collections: Dict[str, CollectionStatus] = field(default_factory=dict)
