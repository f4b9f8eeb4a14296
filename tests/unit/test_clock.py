"""Unit tests for the manually advanced clock."""

import pytest

from latexsync.contexts.triggering.clock import VirtualClock


@pytest.mark.unit
def test_fires_in_due_order():
    clock = VirtualClock()
    fired = []
    clock.call_later(2.0, lambda: fired.append(("b", clock.now())))
    clock.call_later(1.0, lambda: fired.append(("a", clock.now())))

    assert clock.advance(0.5) == 0
    assert clock.advance(2.0) == 2
    assert fired == [("a", 1.0), ("b", 2.0)]
    assert clock.now() == 2.5


@pytest.mark.unit
def test_cancelled_timer_does_not_fire():
    clock = VirtualClock()
    fired = []
    handle = clock.call_later(1.0, lambda: fired.append(1))
    assert clock.pending() == 1

    handle.cancel()

    assert clock.pending() == 0
    assert clock.advance(5.0) == 0
    assert fired == []


@pytest.mark.unit
def test_timer_scheduled_during_advance_can_fire():
    clock = VirtualClock(start=10.0)
    fired = []

    def first():
        fired.append("first")
        clock.call_later(1.0, lambda: fired.append("second"))

    clock.call_later(1.0, first)
    clock.advance(3.0)

    assert fired == ["first", "second"]
