"""
Tests for DebouncedValue: coalescing, flushing and listeners.
"""

import asyncio
from unittest.mock import MagicMock

import pytest

from treemirror.watcher import DebouncedValue


@pytest.mark.asyncio
async def test_rapid_sets_collapse_to_last_value():
    value = DebouncedValue(0, delay=0.05)
    listener = MagicMock()
    value.subscribe(listener)

    for i in range(1, 4):
        value.set(i)
        await asyncio.sleep(0.01)

    assert value.value == 0
    assert value.pending

    await asyncio.sleep(0.15)

    assert value.value == 3
    listener.assert_called_once_with(3)


@pytest.mark.asyncio
async def test_zero_delay_publishes_immediately():
    value = DebouncedValue("a", delay=0)
    value.set("b")
    assert value.value == "b"
    assert not value.pending


def test_without_running_loop_publishes_immediately():
    value = DebouncedValue("a", delay=0.5)
    value.set("b")
    assert value.value == "b"


@pytest.mark.asyncio
async def test_flush_and_cancel():
    value = DebouncedValue(0, delay=5)

    value.set(1)
    value.flush()
    assert value.value == 1

    value.set(2)
    value.cancel()
    await asyncio.sleep(0)
    assert value.value == 1
    assert not value.pending

    # Flushing with nothing pending does nothing
    listener = MagicMock()
    value.subscribe(listener)
    value.flush()
    listener.assert_not_called()


@pytest.mark.parametrize("delay", [-0.1, 10.5])
def test_invalid_delay(delay):
    with pytest.raises(ValueError):
        DebouncedValue(None, delay=delay)


def test_listener_errors_are_logged(caplog):
    value = DebouncedValue(0, delay=0)
    survivor = MagicMock()
    value.subscribe(MagicMock(side_effect=RuntimeError("boom")))
    value.subscribe(survivor)

    value.set(1)

    survivor.assert_called_once_with(1)
    assert "Error in publish listener" in caplog.text


def test_unsubscribe():
    value = DebouncedValue(0, delay=0)
    listener = MagicMock()
    unsubscribe = value.subscribe(listener)

    unsubscribe()
    value.set(1)

    listener.assert_not_called()
