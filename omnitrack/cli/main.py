#!/usr/bin/env python3
"""
Omnitrack Terminal CLI
Command-line front end for the studio: dashboard, projects, clients, crew,
ledger, calendar, tasks, savings, budgets, invoices, reports and the advisor.
"""

import asyncio
import logging
import re
import uuid
import click
from datetime import date
from typing import Optional

from omnitrack.engine import advisor, invoices, metrics
from omnitrack.engine.invoices import InvalidAmountError
from omnitrack.engine.mutations import MutationError
from omnitrack.logging_config import configure_logging, log_call
from omnitrack.models import (
    BUDGET_CATEGORIES,
    CLIENT_CATEGORIES,
    EVENT_CATEGORIES,
    PAYMENT_METHODS,
    PROFESSIONAL_ROLES,
    PROJECT_STATUSES,
    PROJECT_TYPES,
    TASK_PRIORITIES,
    TRANSACTION_CATEGORIES,
    Client,
    InvoiceItem,
    LifeEvent,
    Party,
    Payment,
    Professional,
    Profile,
    Project,
    SavingsGoal,
    Task,
    Transaction,
)
from omnitrack.sync.bootstrap import open_studio
from omnitrack.sync.session import AuthError, LocalState, SessionProvider

_EMAIL_RE = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')
_TIME_RE = re.compile(r'^([01]\d|2[0-3]):[0-5]\d$')


def _money(amount: float) -> str:
    return f"{amount:,.2f}"


def _iso_date(ctx, param, value: Optional[str]) -> Optional[str]:
    """click callback: accept YYYY-MM-DD only."""
    if value is None:
        return None
    try:
        return date.fromisoformat(value).isoformat()
    except ValueError:
        raise click.BadParameter("use YYYY-MM-DD")


def _with_session(action):
    """Boot a studio session, run the coroutine function action(studio) and return its result."""
    logger = logging.getLogger("omnitrack")

    async def _main():
        async with open_studio() as studio:
            if studio.session is None:
                if studio.bootstrapper.slow_connection:
                    click.echo("Connection is slow. Run `omnitrack reset-session` to start fresh.", err=True)
                logger.warning("cli | no session, command aborted")
                click.echo("Not signed in. Run `omnitrack login` first.", err=True)
                return None
            if studio.controller.degraded:
                click.echo(f"⚠ {studio.controller.error}", err=True)
            return await action(studio)

    return asyncio.run(_main())


@click.group()
def cli():
    """Omnitrack - Studio projects, ledger, invoices and reports"""
    configure_logging()


# =============================================================================
# SESSION COMMANDS
# =============================================================================

@cli.command()
@click.option('--email', prompt=True)
@click.option('--password', prompt=True, hide_input=True)
@log_call
def login(email, password):
    """Sign in to your studio"""
    provider = SessionProvider(LocalState())
    try:
        session = provider.sign_in(email, password)
    except AuthError as e:
        click.echo(f"Sign-in failed: {e}", err=True)
        return
    click.echo(f"✓ Signed in as {session.email or session.user_id}")


@cli.command()
@log_call
def signup():
    """Set up a new studio (interactive)"""
    click.echo("\n=== NEW STUDIO SETUP ===\n")
    owner_name = click.prompt("Owner name")
    studio_name = click.prompt("Studio name")
    while True:
        email = click.prompt("Work email")
        if _EMAIL_RE.match(email):
            break
        click.echo("  Invalid email address, please try again.", err=True)
    phone = click.prompt("Phone number", default="", show_default=False)
    password = click.prompt("Password", hide_input=True, confirmation_prompt=True)

    provider = SessionProvider(LocalState())
    try:
        session = provider.sign_up(email, password, {'owner_name': owner_name, 'studio_name': studio_name})
    except AuthError as e:
        click.echo(f"Setup failed: {e}", err=True)
        return

    if session is None:
        click.echo("✓ Check your inbox to confirm the account, then run `omnitrack login`.")
        return

    profile = Profile(owner_name=owner_name, studio_name=studio_name, email=email, phone=phone)

    async def _create(studio):
        await studio.mutations.create_profile(profile)
        return True

    try:
        _with_session(_create)
    except MutationError as e:
        click.echo(f"Studio account created, but the profile was not saved: {e}", err=True)
        return
    click.echo(f"✓ Studio '{studio_name}' is ready")


@cli.command()
@log_call
def logout():
    """Sign out and forget the local session"""
    SessionProvider(LocalState()).sign_out()
    click.echo("✓ Signed out")


@cli.command('reset-session')
@log_call
def reset_session():
    """Clear all locally stored session state (use when startup hangs)"""
    LocalState().clear_all()
    click.echo("✓ Local session state cleared. Run `omnitrack login` to start fresh.")


@cli.command()
@click.option('--toggle', is_flag=True, help='Switch between EN and BN')
@log_call
def lang(toggle):
    """Show or switch the interface language"""
    state = LocalState()
    language = state.toggle_language() if toggle else state.get_language()
    click.echo(f"Language: {language}")


@cli.group()
def profile():
    """Studio profile and logo"""
    pass


@profile.command('show')
@log_call
def profile_show():
    """Show the studio profile"""

    async def _show(studio):
        current = studio.controller.snapshot.profile
        if current is None:
            click.echo("No profile yet.")
            return
        click.echo(f"\n{current.studio_name}")
        click.echo(f"  Owner: {current.owner_name} ({current.role})")
        click.echo(f"  Email: {current.email or '-'}")
        click.echo(f"  Phone: {current.phone or '-'}")
        click.echo(f"  Logo:  {current.logo_reference}")

    _with_session(_show)


@profile.command('set')
@click.option('--owner-name')
@click.option('--studio-name')
@click.option('--email')
@click.option('--phone')
@click.option('--role')
@log_call
def profile_set(owner_name, studio_name, email, phone, role):
    """Update profile fields (only the ones given)"""
    fields = {k: v for k, v in {
        'owner_name': owner_name,
        'studio_name': studio_name,
        'email': email,
        'phone': phone,
        'role': role,
    }.items() if v is not None}
    if not fields:
        click.echo("Nothing to update.", err=True)
        return
    if email and not _EMAIL_RE.match(email):
        click.echo("Invalid email address.", err=True)
        return

    async def _update(studio):
        return await studio.mutations.update_profile(**fields)

    try:
        updated = _with_session(_update)
    except MutationError as e:
        click.echo(str(e), err=True)
        return
    if updated is not None:
        click.echo(f"✓ Updated {', '.join(sorted(fields))}")


@profile.command('logo')
@click.argument('reference', required=False)
@log_call
def profile_logo(reference):
    """Set the logo reference; no argument restores the built-in logo"""

    async def _set(studio):
        return await studio.mutations.set_logo(reference)

    try:
        updated = _with_session(_set)
    except MutationError as e:
        click.echo(str(e), err=True)
        return
    if updated is not None:
        click.echo(f"✓ Logo set to {reference}" if reference else "✓ Built-in logo restored")


# =============================================================================
# DASHBOARD / REPORTS / BUDGET
# =============================================================================

@cli.command('dashboard')
@log_call
def dashboard_cmd():
    """Current month at a glance"""

    async def _show(studio):
        snapshot = studio.controller.snapshot
        stats = metrics.dashboard(snapshot, date.today())
        name = snapshot.profile.owner_name if snapshot.profile and snapshot.profile.owner_name else 'there'

        click.echo(f"\nHello, {name}\n")
        click.echo(f"{'=' * 60}")
        click.echo(f"CURRENT MONTH ({stats.month.month})")
        click.echo(f"{'=' * 60}")
        click.echo(f"Income:          {_money(stats.month.income)}")
        click.echo(f"Expense:         {_money(stats.month.expense)}")
        click.echo(f"Savings:         {_money(stats.month.net)}")
        click.echo(f"Last month net:  {_money(stats.previous_month.net)}")
        click.echo(f"Active projects: {stats.active_projects}")
        click.echo(f"Pending work:    {stats.pending_tasks} ({stats.high_priority_tasks} high priority)")

        click.echo("\nUrgent tasks:")
        if stats.urgent_tasks:
            for task in stats.urgent_tasks:
                left = metrics.days_left(task)
                left_str = f"{left} days" if left is not None else 'no deadline'
                click.echo(f"  [{task.deadline or '----------'}] {task.title} ({left_str})")
        else:
            click.echo("  Great! All tasks completed.")

        click.echo("\nNext upcoming event:")
        if stats.next_event:
            e = stats.next_event
            click.echo(f"  {e.date} {e.time}  {e.title}")
        else:
            click.echo("  No upcoming events")
        click.echo()

    _with_session(_show)


@cli.command('report')
@click.option('--range', 'range_type', type=click.Choice(['monthly', 'half-year', 'custom']),
              default='monthly', help='Report period (default: monthly)')
@click.option('--start', callback=_iso_date, help='Custom range start (YYYY-MM-DD)')
@click.option('--end', callback=_iso_date, help='Custom range end (YYYY-MM-DD)')
@log_call
def report_cmd(range_type, start, end):
    """Financial summary and work list for a period"""
    range_key = range_type.upper().replace('-', '_')
    try:
        start, end = metrics.report_range(range_key, date.today(), start, end)
    except ValueError as e:
        click.echo(str(e), err=True)
        return

    async def _show(studio):
        summary = metrics.report_summary(studio.controller.snapshot, start, end)
        click.echo(f"\nSTUDIO INSIGHTS {summary.start} → {summary.end}\n")
        click.echo(f"Total income:   {_money(summary.income)}")
        click.echo(f"Total expense:  {_money(summary.expense)}")
        click.echo(f"Net profit:     {_money(summary.profit)}")
        click.echo(f"Saved capital:  {_money(summary.total_savings)}")
        click.echo(f"Total work:     {summary.work_count}")
        if summary.items:
            click.echo(f"\n{'Type':<9} {'Title':<30} {'Client':<20} {'Value':>12}")
            click.echo("-" * 74)
            for item in summary.items:
                value = _money(item.total_value) if item.total_value is not None else ''
                click.echo(f"{item.type:<9} {item.title[:28]:<30} {item.client[:18]:<20} {value:>12}")
        click.echo()

    _with_session(_show)


@cli.group()
def budget():
    """Monthly spending limits per category"""
    pass


@budget.command('list')
@log_call
def budget_list():
    """Show spending against each category limit"""

    async def _show(studio):
        snapshot = studio.controller.snapshot
        lines = metrics.budget_consumption(snapshot.transactions, snapshot.budgets)
        click.echo(f"\n{'Category':<14} {'Spent':>12} {'Limit':>12} {'Used':>7}")
        click.echo("-" * 50)
        for line in lines:
            flag = '  OVER' if line.is_over else ''
            click.echo(f"{line.category:<14} {_money(line.spent):>12} {_money(line.limit):>12} {line.percent:>6.0f}%{flag}")
        click.echo()

    _with_session(_show)


@budget.command('set')
@click.argument('category', type=click.Choice(BUDGET_CATEGORIES))
@click.argument('limit', type=float)
@log_call
def budget_set(category, limit):
    """Set the limit for a category"""

    async def _set(studio):
        try:
            studio.controller.set_budget_limit(category, limit)
        except ValueError as e:
            click.echo(str(e), err=True)
            return
        studio.local_state.set_budget_limits(studio.controller.budget_limits())
        click.echo(f"✓ {category} limit set to {_money(limit)}")

    _with_session(_set)


# =============================================================================
# LEDGER
# =============================================================================

@cli.group()
def transactions():
    """Income and expense ledger"""
    pass


@transactions.command('list')
@click.option('--limit', default=50, help='Max entries (default: 50)')
@log_call
def transactions_list(limit):
    """List ledger entries, newest first"""

    async def _show(studio):
        entries = studio.controller.snapshot.transactions
        if not entries:
            click.echo("No transactions found.")
            return
        click.echo(f"\n{'Date':<11} {'Type':<8} {'Category':<12} {'Amount':>12}  Description")
        click.echo("-" * 72)
        for t in entries[:limit]:
            click.echo(f"{t.date:<11} {t.type:<8} {t.category[:11]:<12} {_money(t.amount):>12}  {t.description[:30]}")
        if len(entries) > limit:
            click.echo(f"\n(showing {limit} of {len(entries)})")

    _with_session(_show)


@transactions.command('add')
@click.option('--type', 'kind', type=click.Choice(['INCOME', 'EXPENSE'], case_sensitive=False), default='EXPENSE')
@click.option('--amount', type=float, required=True)
@click.option('--category', type=click.Choice(TRANSACTION_CATEGORIES), default='Other')
@click.option('--date', 'on_date', callback=_iso_date, help='Defaults to today')
@click.option('--description', default='')
@click.option('--currency', type=click.Choice(['BDT', 'USD']), default='BDT')
@click.option('--project', 'project_id', help='Link to a project id')
@log_call
def transactions_add(kind, amount, category, on_date, description, currency, project_id):
    """Record an income or expense"""
    if amount < 0:
        click.echo("Amount must not be negative.", err=True)
        return
    transaction = Transaction(
        amount=amount,
        type=kind.upper(),
        category=category,
        date=on_date or date.today().isoformat(),
        description=description,
        currency=currency,
        project_id=project_id,
    )

    async def _add(studio):
        return await studio.mutations.transactions.create(transaction)

    try:
        created = _with_session(_add)
    except MutationError as e:
        click.echo(str(e), err=True)
        return
    if created:
        click.echo(f"✓ Recorded {created.type.lower()} {_money(created.amount)} ({created.id})")


@transactions.command('delete')
@click.argument('transaction_id')
@log_call
def transactions_delete(transaction_id):
    """Delete a ledger entry"""

    async def _delete(studio):
        return await studio.mutations.transactions.delete(transaction_id)

    try:
        removed = _with_session(_delete)
    except MutationError as e:
        click.echo(str(e), err=True)
        return
    if removed:
        click.echo(f"✓ Deleted transaction {transaction_id}")
    elif removed is not None:
        click.echo(f"Transaction {transaction_id} not found.", err=True)


# =============================================================================
# PROJECTS / CLIENTS / TEAM
# =============================================================================

@cli.group()
def projects():
    """Bookings and their payments"""
    pass


@projects.command('list')
@log_call
def projects_list():
    """List projects with payment progress"""

    async def _show(studio):
        booked = studio.controller.snapshot.projects
        if not booked:
            click.echo("No projects yet.")
            return
        click.echo(f"\n{'Title':<26} {'Client':<18} {'Status':<10} {'Paid':>12} {'Value':>12}  Progress")
        click.echo("-" * 92)
        for p in booked:
            click.echo(f"{p.title[:25]:<26} {p.client[:17]:<18} {p.status:<10} "
                       f"{_money(metrics.project_paid(p)):>12} {_money(p.total_value):>12}  "
                       f"{metrics.project_progress(p):>5.0f}%  ({p.id})")

    _with_session(_show)


@projects.command('add')
@click.option('--title', prompt=True)
@click.option('--client', prompt=True)
@click.option('--value', 'total_value', type=float, prompt='Package value')
@click.option('--type', 'kind', type=click.Choice(PROJECT_TYPES), default='PHOTO')
@click.option('--status', type=click.Choice(PROJECT_STATUSES), default='QUOTED')
@click.option('--date', 'on_date', callback=_iso_date, help='Shoot date (YYYY-MM-DD)')
@click.option('--phone', 'client_phone')
@click.option('--location')
@log_call
def projects_add(title, client, total_value, kind, status, on_date, client_phone, location):
    """Book a new project"""
    if total_value < 0:
        click.echo("Package value must not be negative.", err=True)
        return
    project = Project(
        title=title,
        client=client,
        client_phone=client_phone,
        location=location,
        type=kind,
        status=status,
        total_value=total_value,
        date=on_date,
    )

    async def _add(studio):
        return await studio.mutations.projects.create(project)

    try:
        created = _with_session(_add)
    except MutationError as e:
        click.echo(str(e), err=True)
        return
    if created:
        click.echo(f"✓ Booked '{created.title}' for {created.client} ({created.id})")


@projects.command('pay')
@click.argument('project_id')
@click.argument('amount', type=float)
@click.option('--method', type=click.Choice(PAYMENT_METHODS), default='CASH')
@click.option('--label', default='')
@click.option('--date', 'on_date', callback=_iso_date, help='Defaults to today')
@log_call
def projects_pay(project_id, amount, method, label, on_date):
    """Record a client payment against a project"""
    payment = Payment(amount=amount, date=on_date or date.today().isoformat(), method=method, label=label)

    async def _pay(studio):
        return await studio.mutations.record_payment(project_id, payment)

    try:
        updated = _with_session(_pay)
    except (InvalidAmountError, MutationError) as e:
        click.echo(str(e), err=True)
        return
    except LookupError as e:
        click.echo(str(e).strip("'\""), err=True)
        return
    if updated:
        click.echo(f"✓ {updated.title}: {_money(metrics.project_paid(updated))} of "
                   f"{_money(updated.total_value)} paid ({metrics.project_progress(updated):.0f}%)")


@projects.command('delete')
@click.argument('project_id')
@log_call
def projects_delete(project_id):
    """Delete a project"""
    _delete_record('projects', 'Project', project_id)


def _delete_record(collection: str, label: str, row_id: str) -> None:
    async def _delete(studio):
        return await studio.mutations.dispatcher(collection).delete(row_id)

    try:
        removed = _with_session(_delete)
    except MutationError as e:
        click.echo(str(e), err=True)
        return
    if removed:
        click.echo(f"✓ Deleted {label.lower()} {row_id}")
    elif removed is not None:
        click.echo(f"{label} {row_id} not found.", err=True)


@cli.group()
def clients():
    """Client directory"""
    pass


@clients.command('list')
@click.option('--category', type=click.Choice(CLIENT_CATEGORIES), help='Filter by category')
@log_call
def clients_list(category):
    """List clients"""

    async def _show(studio):
        people = [c for c in studio.controller.snapshot.clients if not category or c.category == category]
        if not people:
            click.echo("No clients found.")
            return
        for c in people:
            click.echo(f"{c.name[:24]:<25} {c.category:<9} {c.phone:<15} {c.email or '':<28} ({c.id})")

    _with_session(_show)


@clients.command('add')
@click.option('--name', prompt=True)
@click.option('--phone', prompt=True)
@click.option('--email')
@click.option('--address')
@click.option('--social')
@click.option('--category', type=click.Choice(CLIENT_CATEGORIES), default='LEAD')
@log_call
def clients_add(name, phone, email, address, social, category):
    """Add a client"""
    if email and not _EMAIL_RE.match(email):
        click.echo("Invalid email address.", err=True)
        return
    client = Client(name=name, phone=phone, email=email, address=address, social=social, category=category)

    async def _add(studio):
        return await studio.mutations.clients.create(client)

    try:
        created = _with_session(_add)
    except MutationError as e:
        click.echo(str(e), err=True)
        return
    if created:
        click.echo(f"✓ Added client {created.name} ({created.id})")


@clients.command('delete')
@click.argument('client_id')
@log_call
def clients_delete(client_id):
    """Delete a client"""
    _delete_record('clients', 'Client', client_id)


@cli.group()
def team():
    """Freelance crew"""
    pass


@team.command('list')
@log_call
def team_list():
    """List crew members and day rates"""

    async def _show(studio):
        crew = studio.controller.snapshot.professionals
        if not crew:
            click.echo("No crew members yet.")
            return
        for p in crew:
            click.echo(f"{p.name[:24]:<25} {p.role:<16} {p.phone:<15} {_money(p.daily_rate):>10}/day  ({p.id})")

    _with_session(_show)


@team.command('add')
@click.option('--name', prompt=True)
@click.option('--role', type=click.Choice(PROFESSIONAL_ROLES), default='Photographer')
@click.option('--phone', prompt=True)
@click.option('--rate', 'daily_rate', type=float, default=0.0, help='Day rate')
@click.option('--portfolio')
@click.option('--location')
@log_call
def team_add(name, role, phone, daily_rate, portfolio, location):
    """Add a crew member"""
    if daily_rate < 0:
        click.echo("Day rate must not be negative.", err=True)
        return
    member = Professional(name=name, role=role, phone=phone, daily_rate=daily_rate,
                          portfolio=portfolio, location=location)

    async def _add(studio):
        return await studio.mutations.professionals.create(member)

    try:
        created = _with_session(_add)
    except MutationError as e:
        click.echo(str(e), err=True)
        return
    if created:
        click.echo(f"✓ Added {created.role.lower()} {created.name} ({created.id})")


@team.command('delete')
@click.argument('member_id')
@log_call
def team_delete(member_id):
    """Remove a crew member"""
    _delete_record('professionals', 'Crew member', member_id)


# =============================================================================
# CALENDAR / TASKS
# =============================================================================

@cli.group()
def events():
    """Shoot calendar"""
    pass


@events.command('list')
@log_call
def events_list():
    """List scheduled dates"""

    async def _show(studio):
        entries = studio.controller.snapshot.events
        if not entries:
            click.echo("No events found.")
            return
        for e in entries:
            client = f"  {e.client_name}" if e.client_name else ''
            click.echo(f"{e.date} {e.time}  {e.title} [{e.category}]{client}  ({e.id})")

    _with_session(_show)


@events.command('add')
@click.option('--title', prompt=True)
@click.option('--date', 'on_date', prompt=True, callback=_iso_date)
@click.option('--time', 'at_time', default='12:00')
@click.option('--category', type=click.Choice(EVENT_CATEGORIES), default='Portrait')
@click.option('--client', 'client_name')
@click.option('--phone', 'client_phone')
@click.option('--location')
@click.option('--description', default='')
@log_call
def events_add(title, on_date, at_time, category, client_name, client_phone, location, description):
    """Schedule a date"""
    if not _TIME_RE.match(at_time):
        click.echo("Time must be HH:MM (24h).", err=True)
        return
    event = LifeEvent(
        title=title, date=on_date, time=at_time, category=category, description=description,
        client_name=client_name, client_phone=client_phone, location=location,
    )

    async def _add(studio):
        return await studio.mutations.events.create(event)

    try:
        created = _with_session(_add)
    except MutationError as e:
        click.echo(str(e), err=True)
        return
    if created:
        click.echo(f"✓ Scheduled '{created.title}' on {created.date} {created.time}")


@events.command('delete')
@click.argument('event_id')
@log_call
def events_delete(event_id):
    """Remove a scheduled date"""

    async def _delete(studio):
        return await studio.mutations.events.delete(event_id)

    try:
        removed = _with_session(_delete)
    except MutationError as e:
        click.echo(str(e), err=True)
        return
    if removed:
        click.echo(f"✓ Deleted event {event_id}")
    elif removed is not None:
        click.echo(f"Event {event_id} not found.", err=True)


@cli.group()
def tasks():
    """Post-production task hub"""
    pass


@tasks.command('list')
@click.option('--all', 'show_all', is_flag=True, help='Include finished tasks')
@log_call
def tasks_list(show_all):
    """Pending tasks, nearest deadline first"""

    async def _show(studio):
        entries = studio.controller.snapshot.tasks
        if not show_all:
            entries = metrics.pending_tasks(entries)
        if not entries:
            click.echo("No tasks found.")
            return
        for t in sorted(entries, key=lambda t: (not t.deadline, t.deadline)):
            left = metrics.days_left(t)
            left_str = f"{left:>4}d" if left is not None else '    -'
            click.echo(f"{t.deadline or '----------':<11} {left_str}  {t.priority:<6} {t.status:<9} {t.title}  ({t.id})")

    _with_session(_show)


@tasks.command('add')
@click.option('--title', prompt=True)
@click.option('--deadline', prompt=True, callback=_iso_date)
@click.option('--priority', type=click.Choice(TASK_PRIORITIES), default='MEDIUM')
@log_call
def tasks_add(title, deadline, priority):
    """Create a pending task"""
    task = Task(title=title, deadline=deadline, status='PENDING', priority=priority)

    async def _add(studio):
        return await studio.mutations.tasks.create(task)

    try:
        created = _with_session(_add)
    except MutationError as e:
        click.echo(str(e), err=True)
        return
    if created:
        click.echo(f"✓ Created task '{created.title}' due {created.deadline}")


@tasks.command('done')
@click.argument('task_id')
@log_call
def tasks_done(task_id):
    """Mark a task finished"""

    async def _finish(studio):
        return await studio.mutations.set_task_status(task_id, 'FINISHED')

    try:
        task = _with_session(_finish)
    except LookupError as e:
        click.echo(str(e).strip("'\""), err=True)
        return
    except MutationError as e:
        click.echo(str(e), err=True)
        return
    if task:
        click.echo(f"✓ Finished '{task.title}'")


# =============================================================================
# SAVINGS / INVOICES / ADVISOR
# =============================================================================

@cli.group()
def savings():
    """Savings vault"""
    pass


@savings.command('list')
@log_call
def savings_list():
    """Show savings goals and progress"""

    async def _show(studio):
        goals = studio.controller.snapshot.savings
        if not goals:
            click.echo("No savings goals yet.")
            return
        for g in goals:
            click.echo(f"{g.name:<24} {_money(g.current):>12} / {_money(g.target):>12}  "
                       f"{metrics.savings_progress(g):>5.0f}%  ({g.id})")

    _with_session(_show)


@savings.command('deposit')
@click.argument('goal_id')
@click.argument('amount', type=float)
@log_call
def savings_deposit(goal_id, amount):
    """Add a manual deposit to a goal"""

    async def _deposit(studio):
        return await studio.mutations.deposit_savings(goal_id, amount)

    try:
        goal = _with_session(_deposit)
    except (InvalidAmountError, MutationError) as e:
        click.echo(str(e), err=True)
        return
    except LookupError as e:
        click.echo(str(e).strip("'\""), err=True)
        return
    if goal:
        click.echo(f"✓ {goal.name}: {_money(goal.current)} saved")


@savings.command('new')
@click.argument('name')
@click.argument('target', type=float)
@click.option('--category', default='Gear')
@log_call
def savings_new(name, target, category):
    """Create a savings goal"""
    if target <= 0:
        click.echo("Target must be positive.", err=True)
        return
    goal = SavingsGoal(name=name, target=target, current=0.0, category=category)

    async def _add(studio):
        return await studio.mutations.savings.create(goal)

    try:
        created = _with_session(_add)
    except MutationError as e:
        click.echo(str(e), err=True)
        return
    if created:
        click.echo(f"✓ Goal '{created.name}' for {_money(created.target)} ({created.id})")


@cli.group('invoices')
def invoices_group():
    """Invoice studio"""
    pass


@invoices_group.command('list')
@log_call
def invoices_list():
    """Saved invoice records"""

    async def _show(studio):
        saved = studio.controller.snapshot.invoices
        if not saved:
            click.echo("No invoices.")
            return
        for inv in saved:
            head = f"{inv.number:<14} {inv.date:<11} {inv.recipient.name[:24]:<25} "
            try:
                totals = invoices.summarize(inv)
            except InvalidAmountError as e:
                click.echo(f"{head}{'INVALID':>12} ({e})")
                continue
            click.echo(f"{head}{_money(totals.total):>12} due {_money(totals.balance_due):>12}")

    _with_session(_show)


@invoices_group.command('draft')
@click.argument('project_id')
@click.option('--save', is_flag=True, help='Store the draft as an invoice record')
@log_call
def invoices_draft(project_id, save):
    """Draft an invoice for a project"""

    async def _draft(studio):
        snapshot = studio.controller.snapshot
        project = next((p for p in snapshot.projects if p.id == project_id), None)
        if project is None:
            click.echo(f"Project {project_id} not found.", err=True)
            return None
        draft = invoices.draft_from_project(
            project, snapshot.clients, invoices.company_from_profile(snapshot.profile),
        )
        for line in invoices.lines(draft):
            click.echo(line)
        if save:
            saved = await studio.mutations.invoices.create(draft)
            click.echo(f"\n✓ Saved invoice {saved.number}")
        return draft

    try:
        _with_session(_draft)
    except (InvalidAmountError, MutationError) as e:
        click.echo(str(e), err=True)


def _parse_item(text: str) -> InvoiceItem:
    description, sep, amount = text.rpartition('=')
    if not sep or not description.strip():
        raise click.BadParameter(f"'{text}' is not DESCRIPTION=AMOUNT")
    try:
        value = float(amount)
    except ValueError:
        raise click.BadParameter(f"'{amount}' is not a number")
    return InvoiceItem(id=str(uuid.uuid4()), description=description.strip(), amount=value, schedule='')


@invoices_group.command('new')
@click.option('--to', 'recipient', required=True, help='Recipient name')
@click.option('--phone', default='')
@click.option('--email', default='')
@click.option('--address', default='')
@click.option('--item', 'items', multiple=True, required=True, help='Line as DESCRIPTION=AMOUNT (repeatable)')
@click.option('--paid', type=float, default=0.0)
@click.option('--save', is_flag=True, help='Store the invoice record')
@log_call
def invoices_new(recipient, phone, email, address, items, paid, save):
    """Write a custom invoice not tied to a project"""
    try:
        lines_in = [_parse_item(text) for text in items]
    except click.BadParameter as e:
        click.echo(f"Invalid item: {e.message}", err=True)
        return

    async def _draft(studio):
        draft = invoices.draft_manual(invoices.company_from_profile(studio.controller.snapshot.profile))
        draft.recipient = Party(name=recipient, email=email, phone=phone, address=address)
        draft.items = lines_in
        draft.paid = invoices.validate_amount(paid, 'paid amount')
        draft.total = invoices.total(draft.items)
        for line in invoices.lines(draft):
            click.echo(line)
        if save:
            saved = await studio.mutations.invoices.create(draft)
            click.echo(f"\n✓ Saved invoice {saved.number}")
        return draft

    try:
        _with_session(_draft)
    except (InvalidAmountError, MutationError) as e:
        click.echo(str(e), err=True)


@cli.command()
@click.argument('question')
@click.option('--model', type=click.Choice(advisor.MODEL_CHOICES), default=None,
              help='AI backend (default: DEFAULT_AI_MODEL)')
@log_call
def ask(question, model):
    """Ask the studio advisor a question"""
    language = LocalState().get_language()

    async def _ask(studio):
        return await asyncio.to_thread(advisor.ask, question, studio.controller.snapshot, language, model)

    try:
        answer = _with_session(_ask)
    except (ValueError, RuntimeError) as e:
        click.echo(f"Advisor unavailable: {e}", err=True)
        return
    if answer:
        click.echo(answer)


if __name__ == '__main__':
    cli()
