"""
Tests for the TimerThread
"""
# Standard
from datetime import datetime, timedelta
import threading
import time

# Third Party
import pytest

# Local
from dbaasreg.test_helpers.helpers import wait_for
from dbaasreg.watch_manager.threads import TimerThread

## Helpers #####################################################################


def in_seconds(seconds):
    return datetime.now() + timedelta(seconds=seconds)


@pytest.fixture
def timer():
    timer = TimerThread()
    yield timer
    timer.stop_thread()


@pytest.mark.timeout(5)
def test_timer_runs_actions_with_args(timer):
    """Make sure positional and keyword args reach the action"""
    timer.start_thread()
    calls = []
    timer.put_event(datetime.now(), calls.append, "now")
    timer.put_event(in_seconds(0.1), lambda value=None: calls.append(value), value="kw")
    assert wait_for(lambda: len(calls) == 2)
    assert calls == ["now", "kw"]


@pytest.mark.timeout(5)
def test_timer_runs_in_time_order(timer):
    """Make sure events run in time order regardless of insertion order"""
    timer.start_thread()
    order = []
    timer.put_event(in_seconds(0.3), order.append, "third")
    timer.put_event(in_seconds(0.1), order.append, "first")
    timer.put_event(in_seconds(0.2), order.append, "second")
    assert wait_for(lambda: len(order) == 3)
    assert order == ["first", "second", "third"]


@pytest.mark.timeout(5)
def test_timer_waits_for_due_time(timer):
    """Make sure an action does not fire before its time"""
    timer.start_thread()
    fired = threading.Event()
    scheduled_at = time.monotonic()
    timer.put_event(in_seconds(0.3), fired.set)
    assert fired.wait(2)
    assert time.monotonic() - scheduled_at >= 0.25


@pytest.mark.timeout(5)
def test_timer_cancelled_event_dropped(timer):
    """Make sure a cancelled event never runs while others still do"""
    calls = []
    timer.put_event(datetime.now(), calls.append, "kept")
    timer.put_event(in_seconds(0.1), calls.append, "cancelled").cancel()

    timer.start_thread()
    time.sleep(0.4)
    assert calls == ["kept"]


@pytest.mark.timeout(5)
def test_timer_action_can_schedule(timer):
    """Make sure an action may schedule a follow up event"""
    timer.start_thread()
    calls = []

    def reschedule():
        calls.append("first")
        timer.put_event(datetime.now(), calls.append, "second")

    timer.put_event(datetime.now(), reschedule)
    assert wait_for(lambda: calls == ["first", "second"])


@pytest.mark.timeout(5)
def test_timer_stop_drops_pending(timer):
    """Make sure a stopped timer runs nothing and accepts no new events"""
    timer.start_thread()
    calls = []
    timer.put_event(in_seconds(0.3), calls.append, "pending")
    timer.stop_thread()
    timer.join(1)
    assert not timer.is_alive()

    assert timer.put_event(datetime.now(), calls.append, "late") is None
    time.sleep(0.4)
    assert calls == []
