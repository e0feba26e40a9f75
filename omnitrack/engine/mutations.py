"""
Mutation Dispatchers
Typed create / delete (and whole-record update) for each collection.

Every write goes to the remote store first; the local snapshot is only changed by
the full refresh that follows a confirmed write. Until that refresh lands the
snapshot shows the old state. A refresh requested while another cycle is already
running is dropped by the controller, so the next cycle picks the write up.
"""

import asyncio
import dataclasses
import logging
import uuid
from typing import Any, Dict, Optional

from omnitrack.bus.events import (
    bus as default_bus,
    EVENT_ENTITY_CREATED,
    EVENT_ENTITY_DELETED,
    EVENT_ENTITY_UPDATED,
    EVENT_PROFILE_UPDATED,
)
from omnitrack.db.store import COLLECTIONS, QueryError
from omnitrack.engine import invoices
from omnitrack.logging_config import log_call
from omnitrack.models import DEFAULT_LOGO, TASK_STATUSES, Payment, Profile
from omnitrack.sync.mapping import SERIALIZERS, profile_to_row, profile_updates_to_row

logger = logging.getLogger(__name__)


class MutationError(RuntimeError):
    """The remote store rejected a write."""

    def __init__(self, message: str, error: Optional[QueryError] = None):
        super().__init__(message)
        self.error = error


class EntityDispatcher:
    """create / update / delete for one collection, scoped to the controller's account."""

    def __init__(self, collection: str, controller, store, event_bus=None):
        if collection not in COLLECTIONS:
            raise ValueError(f"Unknown collection '{collection}'")
        self.collection = collection
        self.controller = controller
        self.store = store
        self.bus = event_bus or default_bus

    def _account_id(self) -> str:
        if not self.controller.context.is_active:
            raise MutationError(f"Cannot write {self.collection}: no signed-in account")
        return self.controller.context.account_id

    def _check(self, result, action: str) -> Any:
        if result.error:
            logger.error(f"{action} {self.collection} failed: {result.error.code}: {result.error.message}")
            raise MutationError(f"Could not {action} {self.collection}: {result.error.message}", result.error)
        return result.data

    def prepare(self, record):
        """Hook for collection-specific validation before a write."""
        return record

    async def create(self, record):
        """Assign an id when missing, insert, then refresh. Returns the record as written."""
        account_id = self._account_id()
        if record.id is None:
            record = dataclasses.replace(record, id=str(uuid.uuid4()))
        record = self.prepare(record)

        row = SERIALIZERS[self.collection](record)
        result = await asyncio.to_thread(self.store.insert_rows, self.collection, account_id, [row])
        self._check(result, 'create')

        logger.info(f"Created {self.collection} record {record.id}")
        self.bus.emit(EVENT_ENTITY_CREATED, {'collection': self.collection, 'id': record.id})
        await self.controller.refresh_all(account_id)
        return record

    async def update(self, record):
        """Whole-record replace by id, then refresh."""
        account_id = self._account_id()
        if record.id is None:
            raise ValueError(f"Cannot update a {self.collection} record without an id")
        record = self.prepare(record)

        row = SERIALIZERS[self.collection](record)
        result = await asyncio.to_thread(self.store.update_row, self.collection, account_id, record.id, row)
        self._check(result, 'update')

        logger.info(f"Updated {self.collection} record {record.id}")
        self.bus.emit(EVENT_ENTITY_UPDATED, {'collection': self.collection, 'id': record.id})
        await self.controller.refresh_all(account_id)
        return record

    async def delete(self, row_id: str) -> bool:
        """Remove by id, then refresh. Returns False when nothing matched."""
        account_id = self._account_id()
        result = await asyncio.to_thread(self.store.delete_row, self.collection, account_id, row_id)
        removed = self._check(result, 'delete') or 0

        if removed:
            logger.info(f"Deleted {self.collection} record {row_id}")
            self.bus.emit(EVENT_ENTITY_DELETED, {'collection': self.collection, 'id': row_id})
        else:
            logger.debug(f"delete: {self.collection} record {row_id} not found")
        await self.controller.refresh_all(account_id)
        return bool(removed)


class InvoiceDispatcher(EntityDispatcher):
    """Invoices are stored with their computed total."""

    def prepare(self, record):
        totals = invoices.summarize(record)
        return dataclasses.replace(record, total=totals.total, paid=totals.paid)


class StudioMutations:
    """One dispatcher per collection plus the record-level operations built on them."""

    def __init__(self, controller, store, event_bus=None):
        self.controller = controller
        self.store = store
        self.bus = event_bus or default_bus

        self.projects = EntityDispatcher('projects', controller, store, self.bus)
        self.transactions = EntityDispatcher('transactions', controller, store, self.bus)
        self.tasks = EntityDispatcher('tasks', controller, store, self.bus)
        self.events = EntityDispatcher('events', controller, store, self.bus)
        self.clients = EntityDispatcher('clients', controller, store, self.bus)
        self.professionals = EntityDispatcher('professionals', controller, store, self.bus)
        self.invoices = InvoiceDispatcher('invoices', controller, store, self.bus)
        self.savings = EntityDispatcher('savings', controller, store, self.bus)

    def dispatcher(self, collection: str) -> EntityDispatcher:
        if collection not in COLLECTIONS:
            raise ValueError(f"Unknown collection '{collection}'")
        return getattr(self, collection)

    def _find(self, collection: str, row_id: str):
        for record in self.controller.collection(collection):
            if record.id == row_id:
                return record
        raise LookupError(f"No {collection} record with id {row_id}")

    @log_call
    async def record_payment(self, project_id: str, payment: Payment):
        """Append a payment to a project's history."""
        invoices.validate_amount(payment.amount, 'payment amount')
        project = self._find('projects', project_id)
        if payment.id is None:
            payment = dataclasses.replace(payment, id=str(uuid.uuid4()))
        project.payments.append(payment)
        return await self.projects.update(project)

    @log_call
    async def set_task_status(self, task_id: str, status: str):
        if status not in TASK_STATUSES:
            raise ValueError(f"Unknown task status '{status}'. Choose from: {', '.join(TASK_STATUSES)}")
        task = self._find('tasks', task_id)
        task.status = status
        return await self.tasks.update(task)

    @log_call
    async def deposit_savings(self, goal_id: str, amount: float):
        """Manual deposit into a savings goal. Only positive amounts are accepted."""
        amount = invoices.validate_amount(amount, 'deposit')
        if amount <= 0:
            raise invoices.InvalidAmountError(f"deposit must be positive (got {amount})")
        goal = self._find('savings', goal_id)
        goal.current += amount
        return await self.savings.update(goal)

    # -------------------------------------------------------------------------
    # Profile
    # -------------------------------------------------------------------------

    def _profile_account(self) -> str:
        if not self.controller.context.is_active:
            raise MutationError("Cannot write profile: no signed-in account")
        return self.controller.context.account_id

    @log_call
    async def create_profile(self, profile: Profile) -> Profile:
        """Account setup: write the singleton profile record."""
        account_id = self._profile_account()
        result = await asyncio.to_thread(self.store.insert_profile, account_id, profile_to_row(profile))
        if result.error:
            logger.error(f"Profile creation error: {result.error.code}: {result.error.message}")
            raise MutationError(f"Could not create profile: {result.error.message}", result.error)
        self.bus.emit(EVENT_PROFILE_UPDATED, {'fields': sorted(profile_to_row(profile))})
        await self.controller.refresh_all(account_id)
        return profile

    @log_call
    async def update_profile(self, **fields: Any) -> Dict[str, Any]:
        """Update explicit profile fields (attribute names), then refresh."""
        account_id = self._profile_account()
        row = profile_updates_to_row(fields)
        result = await asyncio.to_thread(self.store.update_profile, account_id, row)
        if result.error:
            logger.error(f"Profile update error: {result.error.code}: {result.error.message}")
            raise MutationError(f"Could not update profile: {result.error.message}", result.error)
        self.bus.emit(EVENT_PROFILE_UPDATED, {'fields': sorted(row)})
        await self.controller.refresh_all(account_id)
        return row

    async def set_logo(self, logo_reference: Optional[str]) -> Dict[str, Any]:
        """Set the logo; an empty reference restores the built-in default."""
        return await self.update_profile(logo_reference=logo_reference or DEFAULT_LOGO)
