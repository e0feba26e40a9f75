"""
Aggregation Engine
Pure functions deriving dashboard, budget and report figures from a snapshot.
Nothing here touches the network or mutates its inputs; every figure can be
recomputed on each read.

Dates are compared as ISO "YYYY-MM-DD" strings. Currency is informational only:
amounts in different currencies are added as-is.
"""

import calendar
import math
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from omnitrack.models import (
    BUDGET_CATEGORIES,
    Budget,
    LifeEvent,
    Project,
    SavingsGoal,
    Snapshot,
    Task,
    Transaction,
)

DateLike = Union[date, datetime]

RANGE_MONTHLY = 'MONTHLY'
RANGE_HALF_YEAR = 'HALF_YEAR'
RANGE_CUSTOM = 'CUSTOM'
RANGE_TYPES = (RANGE_MONTHLY, RANGE_HALF_YEAR, RANGE_CUSTOM)

URGENT_TASK_LIMIT = 3


@dataclass
class MonthlySummary:
    month: str
    income: float = 0.0
    expense: float = 0.0

    @property
    def net(self) -> float:
        return self.income - self.expense


@dataclass
class DayPoint:
    day: int
    income: float = 0.0
    expense: float = 0.0


@dataclass
class BudgetLine:
    category: str
    limit: float
    spent: float
    percent: float
    is_over: bool


@dataclass
class WorkItem:
    id: Optional[str]
    title: str
    type: str
    client: str
    total_value: Optional[float] = None


@dataclass
class ReportSummary:
    start: str
    end: str
    income: float = 0.0
    expense: float = 0.0
    total_savings: float = 0.0
    items: List[WorkItem] = field(default_factory=list)

    @property
    def profit(self) -> float:
        return self.income - self.expense

    @property
    def work_count(self) -> int:
        return len(self.items)


@dataclass
class DashboardStats:
    month: MonthlySummary
    previous_month: MonthlySummary
    active_projects: int
    pending_tasks: int
    high_priority_tasks: int
    urgent_tasks: List[Task]
    next_event: Optional[LifeEvent]
    daily: List[DayPoint]


def _as_date(now: Optional[DateLike]) -> date:
    if now is None:
        return date.today()
    if isinstance(now, datetime):
        return now.date()
    return now


def month_prefix(now: Optional[DateLike] = None) -> str:
    """ISO year-month of the reference date, e.g. '2024-05'."""
    return _as_date(now).strftime('%Y-%m')


def clamp_percent(value: float) -> float:
    if math.isnan(value):
        return 0.0
    return max(0.0, min(value, 100.0))


# =============================================================================
# LEDGER
# =============================================================================

def _sum(transactions: Iterable[Transaction], kind: str) -> float:
    return sum(t.amount for t in transactions if t.type == kind)


def summary_for_month(transactions: Sequence[Transaction], prefix: str) -> MonthlySummary:
    """Income/expense for one 'YYYY-MM' bucket. Dates not starting with it are excluded."""
    in_month = [t for t in transactions if (t.date or '').startswith(prefix + '-')]
    return MonthlySummary(
        month=prefix,
        income=_sum(in_month, 'INCOME'),
        expense=_sum(in_month, 'EXPENSE'),
    )


def monthly_summary(transactions: Sequence[Transaction], now: Optional[DateLike] = None) -> MonthlySummary:
    return summary_for_month(transactions, month_prefix(now))


def previous_month_summary(transactions: Sequence[Transaction], now: Optional[DateLike] = None) -> MonthlySummary:
    first_of_month = _as_date(now).replace(day=1)
    return summary_for_month(transactions, month_prefix(first_of_month - timedelta(days=1)))


def daily_series(transactions: Sequence[Transaction], now: Optional[DateLike] = None) -> List[DayPoint]:
    """One point per calendar day of the reference month, zero-filled, in day order."""
    today = _as_date(now)
    prefix = month_prefix(today)
    days_in_month = calendar.monthrange(today.year, today.month)[1]

    by_date = {f"{prefix}-{day:02d}": DayPoint(day=day) for day in range(1, days_in_month + 1)}
    for t in transactions:
        point = by_date.get(t.date)
        if point is None:
            continue
        if t.type == 'INCOME':
            point.income += t.amount
        elif t.type == 'EXPENSE':
            point.expense += t.amount

    return list(by_date.values())


# =============================================================================
# PROJECTS / TASKS / EVENTS
# =============================================================================

def project_paid(project: Project) -> float:
    """The paid amount of a project is always the sum of its payments."""
    return sum(p.amount for p in project.payments)


def project_progress(project: Project) -> float:
    """Paid share of the total value in percent; above 100 when overpaid."""
    if project.total_value <= 0:
        return 0.0
    return project_paid(project) / project.total_value * 100


def active_project_count(projects: Iterable[Project]) -> int:
    return sum(1 for p in projects if p.status != 'PAID')


def pending_tasks(tasks: Iterable[Task]) -> List[Task]:
    return [t for t in tasks if t.status != 'FINISHED']


def urgent_tasks(tasks: Iterable[Task], limit: int = URGENT_TASK_LIMIT) -> List[Task]:
    """
    The pending tasks with the nearest deadlines, ascending. sorted() is stable,
    so equal deadlines keep collection order. Tasks without a deadline go last.
    """
    ordered = sorted(pending_tasks(tasks), key=lambda t: (not t.deadline, t.deadline))
    return ordered[:limit]


def days_left(task: Task, now: Optional[DateLike] = None) -> Optional[int]:
    """Whole days until the deadline, rounded up; negative when overdue."""
    if not task.deadline:
        return None
    try:
        deadline = datetime.fromisoformat(task.deadline)
    except ValueError:
        return None
    reference = now if isinstance(now, datetime) else datetime.combine(_as_date(now), datetime.min.time())
    return math.ceil((deadline - reference).total_seconds() / 86400)


def next_event(events: Iterable[LifeEvent], now: Optional[DateLike] = None) -> Optional[LifeEvent]:
    """Earliest event dated today or later, ordered by (date, time)."""
    today = _as_date(now).isoformat()
    upcoming = [e for e in events if e.date >= today]
    if not upcoming:
        return None
    return min(upcoming, key=lambda e: (e.date, e.time))


# =============================================================================
# BUDGETS / SAVINGS
# =============================================================================

def category_spent(transactions: Iterable[Transaction], category: str) -> float:
    return sum(t.amount for t in transactions if t.type == 'EXPENSE' and t.category == category)


def budget_line(category: str, limit: float, spent: float) -> BudgetLine:
    percent = clamp_percent(spent / limit * 100) if limit > 0 else 0.0
    return BudgetLine(
        category=category,
        limit=limit,
        spent=spent,
        percent=percent,
        is_over=limit > 0 and spent > limit,
    )


def budget_consumption(transactions: Sequence[Transaction], budgets: Iterable[Budget],
                       categories: Sequence[str] = BUDGET_CATEGORIES) -> List[BudgetLine]:
    """One line per category of the fixed list; categories without a budget have limit 0."""
    limits = {b.category: b.limit for b in budgets}
    return [
        budget_line(category, limits.get(category) or 0.0, category_spent(transactions, category))
        for category in categories
    ]


def savings_progress(goal: SavingsGoal) -> float:
    if goal.target <= 0:
        return 0.0
    return clamp_percent(goal.current / goal.target * 100)


def total_savings(goals: Iterable[SavingsGoal]) -> float:
    return sum(g.current for g in goals)


# =============================================================================
# REPORTS
# =============================================================================

def _months_back(day: date, months: int) -> date:
    month_index = day.year * 12 + (day.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def report_range(range_type: str, now: Optional[DateLike] = None,
                 start: Optional[str] = None, end: Optional[str] = None) -> Tuple[str, str]:
    """
    Inclusive ISO bounds for a report.

    MONTHLY   : first .. last day of the reference month
    HALF_YEAR : same day six months back .. reference day
    CUSTOM    : start .. end as given
    """
    today = _as_date(now)
    if range_type == RANGE_MONTHLY:
        last_day = calendar.monthrange(today.year, today.month)[1]
        return today.replace(day=1).isoformat(), today.replace(day=last_day).isoformat()
    if range_type == RANGE_HALF_YEAR:
        return _months_back(today, 6).isoformat(), today.isoformat()
    if range_type == RANGE_CUSTOM:
        if not start or not end:
            raise ValueError("A custom report range needs both start and end dates")
        return start, end
    raise ValueError(f"Unknown report range '{range_type}'. Choose from: {', '.join(RANGE_TYPES)}")


def report_summary(snapshot: Snapshot, start: str, end: str) -> ReportSummary:
    """
    Figures for [start, end]. Projects count as work when at least one of their
    payments falls in range; events when their own date does. total_savings is
    the global sum of savings goals and ignores the range.
    """
    in_range = [t for t in snapshot.transactions if start <= t.date <= end]
    projects = [p for p in snapshot.projects if any(start <= pm.date <= end for pm in p.payments)]
    events = [e for e in snapshot.events if start <= e.date <= end]

    items = [
        WorkItem(id=p.id, title=p.title, type='Project', client=p.client, total_value=p.total_value)
        for p in projects
    ] + [
        WorkItem(id=e.id, title=e.title, type='Event', client=e.client_name or 'Guest')
        for e in events
    ]

    return ReportSummary(
        start=start,
        end=end,
        income=_sum(in_range, 'INCOME'),
        expense=_sum(in_range, 'EXPENSE'),
        total_savings=total_savings(snapshot.savings),
        items=items,
    )


# =============================================================================
# DASHBOARD
# =============================================================================

def dashboard(snapshot: Snapshot, now: Optional[DateLike] = None) -> DashboardStats:
    pending = pending_tasks(snapshot.tasks)
    return DashboardStats(
        month=monthly_summary(snapshot.transactions, now),
        previous_month=previous_month_summary(snapshot.transactions, now),
        active_projects=active_project_count(snapshot.projects),
        pending_tasks=len(pending),
        high_priority_tasks=sum(1 for t in pending if t.priority == 'HIGH'),
        urgent_tasks=urgent_tasks(snapshot.tasks),
        next_event=next_event(snapshot.events, now),
        daily=daily_series(snapshot.transactions, now),
    )
