"""
Session bootstrap.

The initial "is there a session" check races a fixed deadline. Whichever settles
first wins; when the deadline wins the check is cancelled and its boot attempt
is invalidated, so neither its result nor any session change it publishes from
its worker thread is ever applied. A second, longer timer offers the
slow-connection recovery action (wipe local session state and start cold). Both
timers are cancelled on teardown so nothing fires after the session has moved on.
"""

import asyncio
import contextvars
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Set

from omnitrack.bus.events import (
    bus as default_bus,
    EVENT_BOOT_TIMEOUT,
    EVENT_TROUBLESHOOT_OFFERED,
)
from omnitrack.config import config
from omnitrack.models import Session

logger = logging.getLogger(__name__)

BOOT_LOADING = 'loading'
BOOT_READY = 'ready'
BOOT_TORN_DOWN = 'torn_down'

# Boot attempt whose session check published the event; None outside a check
_check_attempt = contextvars.ContextVar('omnitrack_check_attempt', default=None)


class CancellableTimer:
    """
    One-shot timer on the running event loop.
    After cancel() the callback is guaranteed never to run.
    """

    def __init__(self, delay: float, callback: Callable[[], None]):
        self.delay = delay
        self.callback = callback
        self.fired = False
        self.cancelled = False
        self._handle: Optional[asyncio.TimerHandle] = None

    def start(self) -> 'CancellableTimer':
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.delay, self._fire)
        return self

    def _fire(self) -> None:
        if self.cancelled:
            return
        self.fired = True
        self.callback()

    def cancel(self) -> None:
        self.cancelled = True
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    @property
    def active(self) -> bool:
        return self._handle is not None and not self.fired and not self.cancelled


class Bootstrapper:
    """Drives init -> active (or unauthenticated) for one controller."""

    def __init__(self, provider, controller, boot_timeout: Optional[float] = None,
                 troubleshoot_after: Optional[float] = None, event_bus=None):
        self.provider = provider
        self.controller = controller
        self.boot_timeout = config.BOOT_TIMEOUT_SECONDS if boot_timeout is None else boot_timeout
        self.troubleshoot_after = config.TROUBLESHOOT_AFTER_SECONDS if troubleshoot_after is None else troubleshoot_after
        self.bus = event_bus or default_bus

        self.state = BOOT_LOADING
        self.session: Optional[Session] = None
        self.timed_out = False
        self.slow_connection = False

        self._troubleshoot_timer: Optional[CancellableTimer] = None
        self._pending: Set[asyncio.Task] = set()
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._attempt = 0
        self._live_attempt: Optional[int] = None

    async def boot(self) -> Optional[Session]:
        """
        Resolve the current session within boot_timeout seconds and, when signed
        in, run the first refresh. Returns the session or None (unauthenticated).
        """
        self.state = BOOT_LOADING
        self.timed_out = False
        self.slow_connection = False
        self._loop = asyncio.get_running_loop()

        if self._unsubscribe is None:
            self._unsubscribe = self.provider.on_session_change(self._on_session_change)

        self._troubleshoot_timer = CancellableTimer(self.troubleshoot_after, self._offer_troubleshoot).start()
        try:
            session = await self._check_session()
            self.session = session
            if session is not None:
                self.controller.activate(session.user_id, session.access_token)
                await self.controller.refresh_all(session.user_id)
        finally:
            if self._troubleshoot_timer is not None:
                self._troubleshoot_timer.cancel()
            if self.state == BOOT_LOADING:
                self.state = BOOT_READY

        return self.session

    async def _check_session(self) -> Optional[Session]:
        self._attempt += 1
        attempt = self._attempt
        self._live_attempt = attempt

        # The task copies the current context, so the worker thread sees its attempt
        marker = _check_attempt.set(attempt)
        try:
            check = asyncio.ensure_future(asyncio.to_thread(self.provider.get_current_session))
        finally:
            _check_attempt.reset(marker)

        done, _ = await asyncio.wait({check}, timeout=self.boot_timeout)

        if not done:
            self._live_attempt = None
            check.cancel()
            # The worker thread may still finish; its outcome is dropped here
            check.add_done_callback(_discard_result)
            self.timed_out = True
            self.slow_connection = True
            logger.warning(f"Session check exceeded {self.boot_timeout}s, continuing unauthenticated")
            self.bus.emit(EVENT_BOOT_TIMEOUT, {'timeout': self.boot_timeout})
            return None

        self._live_attempt = None
        try:
            return check.result()
        except Exception as e:
            logger.error(f"Auth init error: {type(e).__name__}: {e}")
            return None

    def _offer_troubleshoot(self) -> None:
        if self.state != BOOT_LOADING:
            return
        self.slow_connection = True
        logger.warning("Bootstrap is slow, offering session reset")
        self.bus.emit(EVENT_TROUBLESHOOT_OFFERED, {})

    def _on_session_change(self, data: Dict[str, Any]) -> None:
        """
        Bus subscriber. Events published by a session check are tagged with its
        attempt; controller state is only ever touched on the loop thread.
        """
        attempt = _check_attempt.get()
        loop = self._loop
        if loop is None:
            self._apply_session_change(data, attempt)
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            self._apply_session_change(data, attempt)
            return
        try:
            loop.call_soon_threadsafe(self._apply_session_change, data, attempt)
        except RuntimeError:
            logger.debug("Event loop closed, dropping session change")

    def _apply_session_change(self, data: Dict[str, Any], attempt: Optional[int]) -> None:
        if self.state == BOOT_TORN_DOWN:
            return
        if attempt is not None and attempt != self._live_attempt:
            logger.debug(f"Ignoring session change from abandoned check #{attempt}")
            return

        session = data.get('session')
        self.session = session
        if session is None:
            self.controller.reset()
            return

        self.controller.activate(session.user_id, session.access_token)
        if data.get('event') == 'TOKEN_REFRESHED' or self.state == BOOT_LOADING:
            # Boot already refreshes once it has a session
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("Session changed outside an event loop, refresh deferred to next boot")
            return
        task = loop.create_task(self.controller.refresh_all(session.user_id))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def reset_session(self) -> Optional[Session]:
        """
        Recovery action for a stuck bootstrap: clear every bit of locally
        persisted session state, drop the snapshot and boot again from cold.
        """
        logger.info("Resetting local session state")
        self.teardown()
        self.provider.local_state.clear_all()
        self.controller.reset()
        self.session = None
        return await self.boot()

    def teardown(self) -> None:
        """Stop timers, cancel in-flight refreshes and unsubscribe from session changes."""
        if self._troubleshoot_timer is not None:
            self._troubleshoot_timer.cancel()
        for task in list(self._pending):
            task.cancel()
        self._pending.clear()
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._live_attempt = None
        self.state = BOOT_TORN_DOWN


def _discard_result(future: asyncio.Future) -> None:
    if not future.cancelled():
        future.exception()


# =============================================================================
# COMPOSITION ROOT
# =============================================================================

@dataclass
class Studio:
    """Everything a front end needs for one account session."""
    local_state: Any
    provider: Any
    store: Any
    controller: Any
    mutations: Any
    bootstrapper: Bootstrapper

    @property
    def session(self) -> Optional[Session]:
        return self.bootstrapper.session


@asynccontextmanager
async def open_studio(state_dir=None):
    """
    Wire the store, controller, dispatchers and bootstrapper, boot, and yield
    the Studio. Timers and pending refreshes are torn down on exit.
    """
    from omnitrack.db.store import RemoteStore
    from omnitrack.engine.mutations import StudioMutations
    from omnitrack.sync.controller import SyncController
    from omnitrack.sync.session import LocalState, SessionProvider

    local_state = LocalState(state_dir)
    provider = SessionProvider(local_state)
    store = RemoteStore()
    controller = SyncController(store)
    controller.load_budget_limits(local_state.get_budget_limits())
    bootstrapper = Bootstrapper(provider, controller)
    studio = Studio(
        local_state=local_state,
        provider=provider,
        store=store,
        controller=controller,
        mutations=StudioMutations(controller, store),
        bootstrapper=bootstrapper,
    )

    await bootstrapper.boot()
    try:
        yield studio
    finally:
        bootstrapper.teardown()
