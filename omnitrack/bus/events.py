"""
Event Bus - Decoupled Module Communication
The sync layer and dispatchers emit events; the bootstrapper and front end listen.
"""

from typing import Callable, Dict, List, Any, Optional
import logging

logger = logging.getLogger(__name__)


class EventBus:
    """
    Simple event bus for decoupled module communication.
    Handlers run synchronously, in registration order, and are isolated
    from each other: one failing handler never stops the rest.
    """

    def __init__(self):
        self._handlers: Dict[str, List[Callable]] = {}

    def on(self, event_name: str, handler: Callable):
        """
        Register a handler for an event.

        Args:
            event_name: Name of the event to listen for
            handler: Callable that receives event_data dict
        """
        if event_name not in self._handlers:
            self._handlers[event_name] = []
        self._handlers[event_name].append(handler)
        logger.debug(f"Registered handler for event '{event_name}': {getattr(handler, '__name__', handler)}")

    def off(self, event_name: str, handler: Callable):
        """Remove a previously registered handler. Unknown handlers are ignored."""
        handlers = self._handlers.get(event_name, [])
        if handler in handlers:
            handlers.remove(handler)

    def emit(self, event_name: str, event_data: Optional[Dict[str, Any]] = None):
        """
        Emit an event to all registered handlers.

        Args:
            event_name: Name of the event
            event_data: Optional dict of data to pass to handlers
        """
        if event_data is None:
            event_data = {}

        logger.debug(f"Emitting event '{event_name}' with keys: {sorted(event_data)}")

        for handler in list(self._handlers.get(event_name, [])):
            try:
                handler(event_data)
            except Exception as e:
                logger.error(f"Error in handler {getattr(handler, '__name__', handler)} for event '{event_name}': {e}")

    def clear(self):
        """Clear all handlers (useful for testing)."""
        self._handlers.clear()


# Singleton instance
bus = EventBus()


# =============================================================================
# STANDARD EVENTS
# =============================================================================

# Session provider
EVENT_SESSION_CHANGED = 'session_changed'

# Synchronization controller
EVENT_SYNC_STARTED = 'sync_started'
EVENT_SYNC_COMPLETE = 'sync_complete'
EVENT_SYNC_DEGRADED = 'sync_degraded'
EVENT_SNAPSHOT_RESET = 'snapshot_reset'

# Mutation dispatchers
EVENT_ENTITY_CREATED = 'entity_created'
EVENT_ENTITY_UPDATED = 'entity_updated'
EVENT_ENTITY_DELETED = 'entity_deleted'
EVENT_PROFILE_UPDATED = 'profile_updated'

# Bootstrap
EVENT_BOOT_TIMEOUT = 'boot_timeout'
EVENT_TROUBLESHOOT_OFFERED = 'troubleshoot_offered'

# Preferences
EVENT_LANGUAGE_CHANGED = 'language_changed'
