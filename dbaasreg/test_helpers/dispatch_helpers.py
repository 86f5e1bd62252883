"""
Helpers for testing the watch and reconcile threads without a cluster
"""

# Standard
from datetime import timedelta
from queue import Queue
from typing import List, Optional
import threading

# First Party
import alog

# Local
from dbaasreg.managed_object import ManagedObject
from dbaasreg.reconcile import (
    ReconcileContext,
    ReconcileOutcome,
    ReconciliationResult,
)
from dbaasreg.watch_manager import ItemExponentialFailureRateLimiter, RetryPolicies
from dbaasreg.watch_manager.threads import ReconcileThread
from dbaasreg.watch_manager.utils import ReconcileRequest, ReconcileRequestType

from .helpers import setup_deployment

log = alog.use_channel("TEST")


class ScriptedReconciler:
    """Stand-in reconciler that returns a scripted sequence of outcomes. Once
    the script runs out every further call ends DONE. When a gate is given each
    call blocks until the gate is set or the attempt is cancelled.
    """

    def __init__(
        self,
        outcomes: Optional[List[ReconcileOutcome]] = None,
        gate: Optional[threading.Event] = None,
        raise_error: bool = False,
    ):
        self.outcomes = list(outcomes or [])
        self.gate = gate
        self.raise_error = raise_error
        self.calls = Queue()
        self.contexts: List[ReconcileContext] = []
        self.active = 0
        self.max_active = 0
        self._lock = threading.Lock()

    @property
    def call_count(self) -> int:
        return self.calls.qsize()

    def safe_reconcile(self, workload, context: ReconcileContext):
        with self._lock:
            self.active += 1
            self.max_active = max(self.max_active, self.active)
            self.contexts.append(context)
            outcome = self.outcomes.pop(0) if self.outcomes else ReconcileOutcome.DONE
        self.calls.put(workload)
        log.debug2("Scripted reconcile of %s returning %s", workload, outcome)
        try:
            if self.gate is not None:
                while not self.gate.wait(0.01):
                    if context.is_cancelled():
                        return ReconciliationResult.from_outcome(
                            ReconcileOutcome.CANCELLED
                        )
            if self.raise_error:
                raise RuntimeError("Scripted reconcile failure")
            return ReconciliationResult.from_outcome(outcome)
        finally:
            with self._lock:
                self.active -= 1


class MockedReconcileThread(ReconcileThread):
    """Subclass of ReconcileThread that records what it was asked to do"""

    def __init__(self, reconciler=None, retry_policies=None, deploy_manager=None):
        self.requests = Queue()
        self.requeues = Queue()
        super().__init__(
            reconciler=reconciler or ScriptedReconciler(),
            deploy_manager=deploy_manager,
            retry_policies=retry_policies or fast_retry_policies(),
        )

    def push_request(self, request: ReconcileRequest):
        self.requests.put(request)
        super().push_request(request)

    def get_request(self, timeout=5) -> ReconcileRequest:
        return self.requests.get(timeout=timeout)

    def _schedule_requeue(self, request: ReconcileRequest, delay: timedelta):
        self.requeues.put((request, delay))
        super()._schedule_requeue(request, delay)


def fast_retry_policies(
    type_gate_delay=timedelta(seconds=0.05), default_delay=timedelta(seconds=0.01)
) -> RetryPolicies:
    """Retry policies with short delays so requeues fire quickly"""
    return RetryPolicies(
        type_gate=ItemExponentialFailureRateLimiter(
            type_gate_delay, type_gate_delay * 8
        ),
        default=ItemExponentialFailureRateLimiter(default_delay, default_delay * 8),
    )


def make_workload(**kwargs) -> ManagedObject:
    """Make the operator's Deployment wrapped as a watched resource"""
    return ManagedObject(setup_deployment(**kwargs))


def make_request(
    resource: Optional[ManagedObject] = None, request_type=None
) -> ReconcileRequest:
    return ReconcileRequest(
        type=request_type or ReconcileRequestType.REQUEUED,
        resource=resource or make_workload(),
    )
