"""
Per-item exponential backoff used to space out requeued reconciliations
"""

# Standard
from datetime import timedelta
from typing import Dict, Hashable, Optional
import threading

# First Party
import alog

# Local
from .. import config
from ..reconcile import ReconcileOutcome
from ..utils import parse_time_delta
from .utils import MAX_BACKOFF_EXPONENT

log = alog.use_channel("RATELMT")


class ItemExponentialFailureRateLimiter:
    """Backoff that doubles with every failure of the same item, starting at
    base_delay and never exceeding max_delay. There is no limit on the number
    of failures.
    """

    def __init__(self, base_delay: timedelta, max_delay: timedelta):
        assert base_delay <= max_delay, "base_delay must not exceed max_delay"
        self.base_delay = base_delay
        self.max_delay = max_delay
        self._failures: Dict[Hashable, int] = {}
        self._lock = threading.Lock()

    def when(self, item: Hashable) -> timedelta:
        """Record a failure for the item and return how long to wait before
        the next attempt
        """
        with self._lock:
            exponent = self._failures.get(item, 0)
            self._failures[item] = exponent + 1

        if exponent >= MAX_BACKOFF_EXPONENT:
            return self.max_delay
        backoff_seconds = self.base_delay.total_seconds() * 2.0**exponent
        if backoff_seconds >= self.max_delay.total_seconds():
            return self.max_delay
        return timedelta(seconds=backoff_seconds)

    def forget(self, item: Hashable):
        """Clear the failure history of the item"""
        with self._lock:
            self._failures.pop(item, None)

    def num_requeues(self, item: Hashable) -> int:
        """Number of failures recorded for the item"""
        with self._lock:
            return self._failures.get(item, 0)


class RetryPolicies:
    """The two backoff policies of the operator, picked by the outcome tag of a
    reconciliation. A type that is not served yet gets the slow type gate
    backoff. Any other failure gets the default backoff. A finished
    reconciliation clears both.
    """

    def __init__(
        self,
        type_gate: Optional[ItemExponentialFailureRateLimiter] = None,
        default: Optional[ItemExponentialFailureRateLimiter] = None,
    ):
        self.type_gate = type_gate or _limiter_from_config(config.type_gate)
        self.default = default or _limiter_from_config(config.default_requeue)

    def next_requeue(
        self, item: Hashable, outcome: ReconcileOutcome
    ) -> Optional[timedelta]:
        """Get the requeue delay for an item given how its reconciliation ended

        Returns:
            delay:  Optional[timedelta]
                The time to wait before requeueing, or None for no requeue
        """
        if outcome == ReconcileOutcome.TYPE_NOT_READY:
            delay = self.type_gate.when(item)
        elif outcome in [ReconcileOutcome.ERRORED, ReconcileOutcome.CANCELLED]:
            delay = self.default.when(item)
        else:
            self.type_gate.forget(item)
            self.default.forget(item)
            delay = None
        log.debug2("Requeue delay for [%s] after %s: %s", item, outcome, delay)
        return delay


def _limiter_from_config(section) -> ItemExponentialFailureRateLimiter:
    return ItemExponentialFailureRateLimiter(
        base_delay=parse_time_delta(section.min_delay),
        max_delay=parse_time_delta(section.max_delay),
    )
