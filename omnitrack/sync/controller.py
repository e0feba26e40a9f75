"""
Synchronization Controller
Owns the in-memory snapshot of one account's data and drives full refresh cycles.

A refresh issues the profile lookup and the eight collection fetches at once and
waits for all of them to settle. Each collection is written back on its own: a
failed fetch leaves that collection's previous value in place and never blocks
the others.
"""

import asyncio
import copy
import logging
from typing import Any, Dict, List, Optional

from omnitrack.bus.events import (
    bus as default_bus,
    EVENT_SNAPSHOT_RESET,
    EVENT_SYNC_COMPLETE,
    EVENT_SYNC_DEGRADED,
    EVENT_SYNC_STARTED,
)
from omnitrack.db.store import COLLECTIONS, NOT_FOUND
from omnitrack.logging_config import log_call
from omnitrack.models import (
    AccountContext,
    Budget,
    CollectionStatus,
    Profile,
    RefreshReport,
    Snapshot,
)
from omnitrack.sync.mapping import normalize_profile, normalize_rows

logger = logging.getLogger(__name__)

SYNC_DEGRADED_MESSAGE = "Data sync partially failed. Check connection."

# Marks a collection whose query came back with a structured error
_NO_DATA = object()


class SyncController:
    """
    Single writer of the snapshot for one account session.

    Other components read through `snapshot`, which hands out copies, and reach
    the remote store through the mutation dispatchers, which call refresh_all.
    """

    def __init__(self, store, context: Optional[AccountContext] = None, event_bus=None):
        self.store = store
        self.context = context or AccountContext()
        self.bus = event_bus or default_bus
        self.error: Optional[str] = None
        self.last_report: Optional[RefreshReport] = None
        self._snapshot = Snapshot()
        self._in_progress = False
        # Bumped by reset(); results of a cycle started before a reset are discarded
        self._generation = 0

    # -------------------------------------------------------------------------
    # Read side
    # -------------------------------------------------------------------------

    @property
    def snapshot(self) -> Snapshot:
        """A copy of the current snapshot. Mutating it does not affect the controller."""
        return copy.deepcopy(self._snapshot)

    @property
    def profile(self) -> Optional[Profile]:
        return copy.deepcopy(self._snapshot.profile)

    def collection(self, name: str) -> List[Any]:
        if name not in COLLECTIONS:
            raise ValueError(f"Unknown collection '{name}'")
        return copy.deepcopy(getattr(self._snapshot, name))

    @property
    def is_refreshing(self) -> bool:
        return self._in_progress

    @property
    def degraded(self) -> bool:
        return self.error is not None

    # -------------------------------------------------------------------------
    # Refresh cycle
    # -------------------------------------------------------------------------

    @log_call
    async def refresh_all(self, account_id: Optional[str] = None) -> RefreshReport:
        """
        Fetch the profile and every collection concurrently and republish them.

        A call made while another cycle is running returns immediately with
        report.skipped set; it is neither queued nor run in parallel.
        """
        if self._in_progress:
            logger.debug("refresh_all: cycle already in flight, dropping request")
            return RefreshReport(skipped=True)

        account_id = account_id or self.context.account_id
        if not account_id:
            raise ValueError("refresh_all needs an account id (no active account)")

        self._in_progress = True
        self.error = None
        generation = self._generation
        report = RefreshReport()
        self.bus.emit(EVENT_SYNC_STARTED, {'account_id': account_id})

        try:
            report.degraded = await self._sync(account_id, generation, report)
        except Exception as e:
            logger.error(f"Data sync error: {type(e).__name__}: {e}")
            report.degraded = True
        finally:
            self._in_progress = False

        if generation != self._generation:
            # Reset mid-cycle; the old account gets no completion event
            pass
        elif report.degraded:
            self.error = SYNC_DEGRADED_MESSAGE
            self.bus.emit(EVENT_SYNC_DEGRADED, {'account_id': account_id, 'message': self.error})
        else:
            self.bus.emit(EVENT_SYNC_COMPLETE, {'account_id': account_id})

        self.last_report = report
        return report

    async def _sync(self, account_id: str, generation: int, report: RefreshReport) -> bool:
        names = list(COLLECTIONS)
        results = await asyncio.gather(
            self._fetch_profile(account_id),
            *(self._fetch_collection(name, account_id) for name in names),
            return_exceptions=True,
        )

        if generation != self._generation:
            logger.info("refresh_all: snapshot was reset during the cycle, discarding results")
            return False

        degraded = False
        profile_result, collection_results = results[0], results[1:]

        if isinstance(profile_result, BaseException):
            logger.error(f"Profile fetch failed: {type(profile_result).__name__}: {profile_result}")
            degraded = True
        elif profile_result is not None:
            self._snapshot.profile = profile_result

        for name, result in zip(names, collection_results):
            status = CollectionStatus(name=name)
            if isinstance(result, BaseException):
                status.error = f"{type(result).__name__}: {result}"
                logger.error(f"Fetch of {name} failed: {status.error}")
                degraded = True
            elif result is _NO_DATA:
                status.error = 'query error'
            else:
                # One assignment per collection; other slots are untouched
                setattr(self._snapshot, name, result)
                status.updated = True
            report.collections[name] = status

        return degraded

    async def _fetch_profile(self, account_id: str) -> Optional[Profile]:
        result = await asyncio.to_thread(self.store.fetch_profile, account_id)
        if result.error:
            if result.error.code != NOT_FOUND:
                logger.warning(f"Profile fetch issue: {result.error.code}: {result.error.message}")
            return None
        return normalize_profile(result.data)

    async def _fetch_collection(self, name: str, account_id: str):
        result = await asyncio.to_thread(self.store.fetch_collection, name, account_id)
        if result.error:
            logger.debug(f"{name}: query error {result.error.code}, keeping previous value")
            return _NO_DATA
        return normalize_rows(name, result.data)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def activate(self, account_id: str, access_token: Optional[str] = None) -> None:
        """Bind the controller to a signed-in account."""
        if self.context.account_id and self.context.account_id != account_id:
            self.reset()
        self.context.activate(account_id, access_token)
        logger.info(f"Account {account_id} active")

    def reset(self) -> None:
        """Sign-out: drop every collection and the profile. No network calls."""
        self._generation += 1
        self._snapshot = Snapshot()
        self.error = None
        self.last_report = None
        self.context.reset()
        logger.info("Snapshot reset")
        self.bus.emit(EVENT_SNAPSHOT_RESET, {})

    # -------------------------------------------------------------------------
    # Local-only budgets
    # -------------------------------------------------------------------------

    @property
    def budgets(self) -> List[Budget]:
        return copy.deepcopy(self._snapshot.budgets)

    def set_budget_limit(self, category: str, limit: float) -> Budget:
        """Replace the limit for a category, or add a budget for it."""
        if limit < 0:
            raise ValueError(f"Budget limit must not be negative (got {limit})")
        for budget in self._snapshot.budgets:
            if budget.category == category:
                budget.limit = limit
                return copy.deepcopy(budget)
        budget = Budget(category=category, limit=limit)
        self._snapshot.budgets.append(budget)
        return copy.deepcopy(budget)

    def load_budget_limits(self, limits: Dict[str, float]) -> None:
        for category, limit in limits.items():
            self.set_budget_limit(category, float(limit))

    def budget_limits(self) -> Dict[str, float]:
        return {b.category: b.limit for b in self._snapshot.budgets}
