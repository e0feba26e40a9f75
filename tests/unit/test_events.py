"""
Unit tests for the EventBus (omnitrack/bus/events.py).
Pure Python, no mocking required.
"""

import pytest
from omnitrack.bus.events import (
    EventBus,
    EVENT_SESSION_CHANGED, EVENT_SYNC_STARTED, EVENT_SYNC_COMPLETE, EVENT_SYNC_DEGRADED,
    EVENT_SNAPSHOT_RESET, EVENT_ENTITY_CREATED, EVENT_ENTITY_UPDATED, EVENT_ENTITY_DELETED,
    EVENT_PROFILE_UPDATED, EVENT_BOOT_TIMEOUT, EVENT_TROUBLESHOOT_OFFERED, EVENT_LANGUAGE_CHANGED,
)


@pytest.fixture
def bus():
    """Fresh EventBus for each test."""
    return EventBus()


def test_handler_called_on_emit(bus):
    received = []
    bus.on('test_event', lambda data: received.append(data))
    bus.emit('test_event', {'key': 'value'})
    assert received == [{'key': 'value'}]


def test_handlers_called_in_registration_order(bus):
    calls = []
    bus.on('evt', lambda d: calls.append('a'))
    bus.on('evt', lambda d: calls.append('b'))
    bus.emit('evt', {})
    assert calls == ['a', 'b']


def test_emit_without_data_passes_empty_dict(bus):
    received = []
    bus.on('evt', received.append)
    bus.emit('evt')
    assert received == [{}]


def test_emit_unknown_event_is_noop(bus):
    bus.emit('nobody_listens', {'x': 1})


def test_failing_handler_does_not_stop_others(bus):
    calls = []

    def broken(_):
        raise RuntimeError('boom')

    bus.on('evt', broken)
    bus.on('evt', lambda d: calls.append('ok'))
    bus.emit('evt', {})
    assert calls == ['ok']


def test_off_removes_handler(bus):
    calls = []
    handler = lambda d: calls.append(d)
    bus.on('evt', handler)
    bus.off('evt', handler)
    bus.emit('evt', {'x': 1})
    assert calls == []


def test_off_unknown_handler_is_ignored(bus):
    bus.off('evt', lambda d: None)


def test_handler_unsubscribing_during_emit_does_not_skip_next(bus):
    calls = []

    def once(d):
        calls.append('once')
        bus.off('evt', once)

    bus.on('evt', once)
    bus.on('evt', lambda d: calls.append('second'))
    bus.emit('evt', {})
    bus.emit('evt', {})
    assert calls == ['once', 'second', 'second']


def test_clear_removes_all_handlers(bus):
    calls = []
    bus.on('a', lambda d: calls.append('a'))
    bus.on('b', lambda d: calls.append('b'))
    bus.clear()
    bus.emit('a', {})
    bus.emit('b', {})
    assert calls == []


def test_standard_event_names_are_unique():
    names = [
        EVENT_SESSION_CHANGED, EVENT_SYNC_STARTED, EVENT_SYNC_COMPLETE, EVENT_SYNC_DEGRADED,
        EVENT_SNAPSHOT_RESET, EVENT_ENTITY_CREATED, EVENT_ENTITY_UPDATED, EVENT_ENTITY_DELETED,
        EVENT_PROFILE_UPDATED, EVENT_BOOT_TIMEOUT, EVENT_TROUBLESHOOT_OFFERED, EVENT_LANGUAGE_CHANGED,
    ]
    assert len(names) == len(set(names))
