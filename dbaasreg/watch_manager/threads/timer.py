"""
The TimerThread runs delayed actions, which the reconcile thread uses for
requeues
"""

# Standard
from datetime import datetime
from heapq import heappop, heappush
from typing import Any, Callable, List, Optional
import threading

# First Party
import alog

# Local
from ..utils import MIN_SLEEP_TIME, TimerEvent
from .base import ThreadBase

log = alog.use_channel("TMRTHRD")


class TimerThread(ThreadBase):
    """One thread that runs every scheduled action at its time, like a shared
    threading.Timer. Events are kept in a heap ordered by time and can be
    cancelled until they fire.
    """

    def __init__(self, name: Optional[str] = None):
        super().__init__(name=name or "timer_thread", daemon=True)
        self.timer_heap: List[TimerEvent] = []
        self.notify_condition = threading.Condition()

    def run(self):
        while True:
            with self.notify_condition:
                timeout = self._get_time_to_sleep()
                log.debug2("Timer sleeping for %s", timeout or "the next event")
                self.notify_condition.wait(timeout=timeout)
                if self.should_stop():
                    return
                due_events = self._pop_due_events()

            # Actions run outside the lock so they may schedule new events
            for event in due_events:
                log.debug("Timer firing %s", event)
                event.action(*event.args, **event.kwargs)

    def stop_thread(self):
        super().stop_thread()
        with self.notify_condition:
            self.notify_condition.notify_all()

    ## Public Interface ########################################################

    def put_event(
        self, time: datetime, action: Callable, *args: Any, **kwargs: Any
    ) -> Optional[TimerEvent]:
        """Schedule action(*args, **kwargs) to run at the given time

        Returns:
            event:  Optional[TimerEvent]
                Handle that can cancel the action, or None if the timer has
                been stopped and nothing was scheduled
        """
        if self.should_stop():
            return None

        event = TimerEvent(time=time, action=action, args=args, kwargs=kwargs)
        with self.notify_condition:
            heappush(self.timer_heap, event)
            self.notify_condition.notify_all()
        return event

    ## Implementation Details ##################################################

    def _get_time_to_sleep(self) -> Optional[float]:
        """Seconds until the earliest event, or None to sleep until notified.
        Must hold notify_condition.
        """
        if not self.timer_heap:
            return None
        remaining = (self.timer_heap[0].time - datetime.now()).total_seconds()
        return max(remaining, MIN_SLEEP_TIME)

    def _pop_due_events(self) -> List[TimerEvent]:
        """Remove every event whose time has come, dropping cancelled ones.
        Must hold notify_condition.
        """
        now = datetime.now()
        due_events = []
        while self.timer_heap and self.timer_heap[0].time <= now:
            event = heappop(self.timer_heap)
            if event.stale:
                log.debug2("Dropping cancelled event %s", event)
                continue
            due_events.append(event)
        return due_events
