"""
The ReconcileThread is the heart of the WatchManager and controls reconciling
resources on a pool of worker threads
"""
# Standard
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime, timedelta
from functools import partial
from typing import Dict, Optional
import os
import queue
import threading

# First Party
import alog

# Local
from ... import config
from ...deploy_manager import DeployManagerBase
from ...reconcile import (
    ProviderReconciler,
    ReconcileContext,
    ReconcileOutcome,
    ReconciliationResult,
)
from ...utils import parse_time_delta
from ..rate_limiter import RetryPolicies
from ..utils import (
    STOP_JOIN_TIMEOUT,
    ReconcileCompletion,
    ReconcileRequest,
    ReconcileRequestType,
    TimerEvent,
)
from .base import ThreadBase
from .timer import TimerThread

log = alog.use_channel("RCLTHRD")


class ReconcileThread(ThreadBase):  # pylint: disable=too-many-instance-attributes
    """Dispatches reconcile requests to a worker pool. Reconciles of the same
    resource never overlap, and each outcome decides when the resource is
    requeued.
    """

    def __init__(
        self,
        reconciler: ProviderReconciler,
        deploy_manager: DeployManagerBase = None,
        retry_policies: Optional[RetryPolicies] = None,
    ):
        """
        Args:
            reconciler: ProviderReconciler
                The reconciler run for every request
            deploy_manager: DeployManagerBase = None
                The deploy manager used throughout the thread
            retry_policies: Optional[RetryPolicies] = None
                Backoff policies used to schedule requeues. Built from the
                library config when not given
        """
        super().__init__(name="reconcile_thread", deploy_manager=deploy_manager)
        self.reconciler = reconciler
        self.retry_policies = retry_policies or RetryPolicies()

        # Requests from the watch and timer threads and completions from the
        # workers all arrive on one queue
        self.request_queue = queue.Queue()

        self.timer_thread: TimerThread = TimerThread()

        # Keyed by resource uid. At most one running and one pending request
        # per resource, and at most one scheduled requeue
        self.running_reconciles: Dict[str, ReconcileRequest] = {}
        self.pending_reconciles: Dict[str, ReconcileRequest] = {}
        self.event_map: Dict[str, TimerEvent] = {}

        # Set on shutdown to abort in-flight reconciles
        self.cancel_event = threading.Event()

        # Defaults to one worker per cpu
        self.max_concurrent_reconciles = (
            config.max_concurrent_reconciles or os.cpu_count()
        )
        self.executor = ThreadPoolExecutor(
            max_workers=self.max_concurrent_reconciles,
            thread_name_prefix="reconcile_worker",
        )

        reconcile_timeout = parse_time_delta(config.reconcile_timeout or "")
        self.reconcile_timeout = (
            reconcile_timeout.total_seconds() if reconcile_timeout else None
        )

    def run(self):
        """The reconcile thread waits for either a new reconcile request or a
        worker completion. A request starts a reconcile unless one is already
        running for the resource, in which case it is held as the single
        pending request for that resource. A completion schedules a requeue
        based on its outcome and starts any pending request.
        """
        while True:
            item = self.request_queue.get()
            if self.should_stop():
                return

            if isinstance(item, ReconcileCompletion):
                self._handle_completion(item)
            elif item.type == ReconcileRequestType.STOPPED:
                log.debug("Received stop request")
                return
            else:
                self._handle_request(item)

    ## Thread Lifecycle ########################################################

    def start_thread(self):
        """Start the timer along with this thread"""
        self.timer_thread.start_thread()
        super().start_thread()

    def stop_thread(self):
        """Override stop_thread to cancel and wait for running reconciles"""
        super().stop_thread()
        self.cancel_event.set()
        self.timer_thread.stop_thread()

        # Wake the loop so it sees the stop
        log.debug("Pushing stop sentinel")
        self.push_request(ReconcileRequest(ReconcileRequestType.STOPPED, None))

        if self.is_alive():
            log.debug("Joining reconcile thread")
            self.join(STOP_JOIN_TIMEOUT)

        log.info("Waiting for in-flight reconciles to finish")
        self.executor.shutdown(wait=True)

    ## Requests ################################################################

    def push_request(self, request: ReconcileRequest):
        """Queue a request. Safe to call from any thread"""
        log.debug3("Queueing %s", request)
        self.request_queue.put(request)

    ## Implementation Details ##################################################

    def _handle_request(self, request: ReconcileRequest):
        """Start a reconcile for the request or hold it as pending"""
        uid = request.uid()

        # A fresh request supersedes any scheduled requeue
        scheduled = self.event_map.pop(uid, None)
        if scheduled:
            scheduled.cancel()

        if uid in self.running_reconciles:
            log.debug(
                "Reconcile already running for %s. Holding %s request",
                request.resource,
                request.type,
            )
            self.pending_reconciles[uid] = request
            return

        self._start_reconcile(request)

    def _start_reconcile(self, request: ReconcileRequest):
        """Submit a reconcile for the request to the worker pool"""
        uid = request.uid()
        log.debug(
            "Starting reconcile for %s from %s request",
            request.resource,
            request.type,
            extra={"resource": request.resource.definition},
        )
        self.running_reconciles[uid] = request
        context = ReconcileContext(
            timeout=self.reconcile_timeout, cancel_event=self.cancel_event
        )
        future = self.executor.submit(
            self.reconciler.safe_reconcile, request.resource, context
        )
        future.add_done_callback(partial(self._reconcile_done, request))

    def _reconcile_done(self, request: ReconcileRequest, future: Future):
        """Worker callback that reports the result back to the reconcile thread"""
        if future.cancelled():
            result = ReconciliationResult.from_outcome(ReconcileOutcome.CANCELLED)
        elif future.exception() is not None:
            result = ReconciliationResult.from_outcome(
                ReconcileOutcome.ERRORED, future.exception()
            )
        else:
            result = future.result()
        self.request_queue.put(ReconcileCompletion(request=request, result=result))

    def _handle_completion(self, completion: ReconcileCompletion):
        """Record the end of a reconcile and decide what runs next"""
        uid = completion.uid()
        self.running_reconciles.pop(uid, None)
        result = completion.result
        log.debug(
            "Reconcile for %s completed with %s",
            completion.request.resource,
            result.outcome.value,
        )

        delay = self.retry_policies.next_requeue(uid, result.outcome)

        pending = self.pending_reconciles.pop(uid, None)
        if pending:
            log.debug2("Starting pending request for %s", pending.resource)
            self._handle_request(pending)
        elif delay is not None:
            self._schedule_requeue(completion.request, delay)

    def _schedule_requeue(self, request: ReconcileRequest, delay: timedelta):
        """Push a REQUEUED request to the timer to fire after delay"""
        if self.should_stop():
            return

        requeue_request = ReconcileRequest(
            type=ReconcileRequestType.REQUEUED, resource=request.resource
        )
        log.info("Requeueing %s in %ss", request.resource, delay.total_seconds())
        event = self.timer_thread.put_event(
            datetime.now() + delay, self.push_request, requeue_request
        )
        if event:
            self.event_map[request.uid()] = event
