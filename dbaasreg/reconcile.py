"""
The ProviderReconciler runs one reconciliation of the provider registration:
fetch the triggering Deployment, wait for the provider API type, resolve the
owning ClusterRole, load the definition, and create or update the registration.
"""

# Standard
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union
import base64
import threading
import time
import uuid

# First Party
import alog

# Local
from . import constants
from .definition import load_definition
from .deploy_manager import DeployManagerBase
from .discovery import is_kind_available
from .exceptions import (
    DefinitionError,
    OwnerNotFoundError,
    ReconcileCancelledError,
    assert_cluster,
)
from .managed_object import ManagedObject
from .operator_config import OperatorConfig
from .owner import find_owner
from .registration import build_desired_provider

log = alog.use_channel("RECONCILE")


## Data models #################################################################


class ReconcileOutcome(Enum):
    """Tag describing how a reconciliation ended. The dispatcher picks the
    retry policy from this tag.
    """

    # The registration is in place
    DONE = "DONE"
    # The triggering Deployment no longer exists
    WORKLOAD_GONE = "WORKLOAD_GONE"
    # The provider API type is not served yet
    TYPE_NOT_READY = "TYPE_NOT_READY"
    # Any other fault
    ERRORED = "ERRORED"
    # The dispatcher cancelled the attempt or its deadline passed
    CANCELLED = "CANCELLED"


class ReconcilePhase(Enum):
    """The steps of a single reconciliation"""

    FETCH_WORKLOAD = "FetchWorkload"
    CHECK_GATE = "CheckGate"
    RESOLVE_OWNER = "ResolveOwner"
    LOAD_DEFINITION = "LoadDefinition"
    UPSERT = "Upsert"
    DONE = "Done"


# Outcomes that ask the dispatcher for another attempt
REQUEUE_OUTCOMES = [
    ReconcileOutcome.TYPE_NOT_READY,
    ReconcileOutcome.ERRORED,
    ReconcileOutcome.CANCELLED,
]


@dataclass
class ReconciliationResult:
    """ReconciliationResult is the result of a single reconciliation"""

    # Tag describing how the attempt ended
    outcome: ReconcileOutcome
    # Flag to control requeue of current reconcile request
    requeue: bool = False
    # The exception that ended the attempt, if any
    exception: Optional[Exception] = None

    @classmethod
    def from_outcome(
        cls, outcome: ReconcileOutcome, exception: Optional[Exception] = None
    ) -> "ReconciliationResult":
        return cls(
            outcome=outcome,
            requeue=outcome in REQUEUE_OUTCOMES,
            exception=exception,
        )


class ReconcileContext:
    """Per-attempt deadline and cancellation handed down by the dispatcher"""

    def __init__(
        self,
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
        reconciliation_id: Optional[str] = None,
    ):
        """
        Args:
            timeout:  Optional[float]
                Seconds the whole attempt may take. None means no deadline
            cancel_event:  Optional[threading.Event]
                Event that the dispatcher sets to abort the attempt
            reconciliation_id:  Optional[str]
                Identifier attached to every log line of the attempt
        """
        self.deadline = time.monotonic() + timeout if timeout is not None else None
        self.cancel_event = cancel_event or threading.Event()
        self.reconciliation_id = reconciliation_id or generate_id()
        self.phase: Optional[ReconcilePhase] = None

    def is_cancelled(self) -> bool:
        """True once the dispatcher cancelled the attempt or the deadline passed"""
        if self.cancel_event.is_set():
            return True
        return self.deadline is not None and time.monotonic() >= self.deadline

    def timeout(self) -> Optional[float]:
        """The time left for the next cluster call"""
        if self.deadline is None:
            return None
        return max(self.deadline - time.monotonic(), 0.0)

    def enter(self, phase: ReconcilePhase):
        """Move to the next phase, aborting if the attempt was cancelled

        Raises:
            ReconcileCancelledError: If the attempt must stop
        """
        if self.is_cancelled():
            raise ReconcileCancelledError(
                f"Reconciliation cancelled before {phase.value}", phase=phase.value
            )
        log.debug2("Entering phase %s", phase.value)
        self.phase = phase


def generate_id() -> str:
    """Generates a unique human readable id for a reconciliation

    Returns:
        id: str
            A unique base32 encoded id
    """
    base32_str = base64.b32encode(uuid.uuid4().bytes).decode("utf-8")
    return base32_str[:22]


## ProviderReconciler ##########################################################


class ProviderReconciler:
    """Reconciles the provider registration for the running operator. A single
    instance is shared by all dispatcher workers and holds no per-attempt
    state.
    """

    def __init__(
        self,
        operator_config: OperatorConfig,
        deploy_manager: DeployManagerBase,
    ):
        self.operator_config = operator_config
        self.deploy_manager = deploy_manager

    def reconcile(
        self,
        workload: Union[ManagedObject, dict],
        context: Optional[ReconcileContext] = None,
    ) -> ReconciliationResult:
        """Run one reconciliation. Faults are raised to the caller.

        Args:
            workload:  Union[ManagedObject, dict]
                The Deployment that triggered the reconciliation. Only its
                namespace and name are used
            context:  Optional[ReconcileContext]
                Deadline and cancellation for this attempt

        Returns:
            result:  ReconciliationResult
                The result for the clean exits (DONE, WORKLOAD_GONE and
                TYPE_NOT_READY)
        """
        context = context or ReconcileContext()
        metadata = workload.get("metadata", {})
        namespace = metadata.get("namespace")
        name = metadata.get("name")

        context.enter(ReconcilePhase.FETCH_WORKLOAD)
        success, current = self.deploy_manager.get_object_current_state(
            kind=constants.WORKLOAD_KIND,
            name=name,
            namespace=namespace,
            api_version=constants.WORKLOAD_API_VERSION,
            timeout=context.timeout(),
        )
        assert_cluster(
            success, f"Failed to fetch {constants.WORKLOAD_KIND} {namespace}/{name}"
        )
        if current is None:
            self._log(
                log.info,
                context,
                workload,
                "%s %s/%s not found, deleted, no requeue",
                constants.WORKLOAD_KIND,
                namespace,
                name,
            )
            return ReconciliationResult.from_outcome(ReconcileOutcome.WORKLOAD_GONE)

        context.enter(ReconcilePhase.CHECK_GATE)
        if not is_kind_available(
            self.deploy_manager,
            constants.PROVIDER_API_VERSION,
            constants.PROVIDER_KIND,
            timeout=context.timeout(),
        ):
            self._log(
                log.info,
                context,
                workload,
                "%s type not served yet, requeueing with type gate backoff",
                constants.PROVIDER_KIND,
            )
            return ReconciliationResult.from_outcome(ReconcileOutcome.TYPE_NOT_READY)

        context.enter(ReconcilePhase.RESOLVE_OWNER)
        owner = find_owner(
            self.deploy_manager, self.operator_config, timeout=context.timeout()
        )

        context.enter(ReconcilePhase.LOAD_DEFINITION)
        definition = load_definition(self.operator_config.definition_path)

        context.enter(ReconcilePhase.UPSERT)
        operation_result = self.deploy_manager.create_or_update(
            kind=constants.PROVIDER_KIND,
            api_version=constants.PROVIDER_API_VERSION,
            name=constants.PROVIDER_NAME,
            mutate=lambda existing: build_desired_provider(existing, definition, owner),
            timeout=context.timeout(),
            cancel_event=context.cancel_event,
        )

        context.phase = ReconcilePhase.DONE
        self._log(
            log.info,
            context,
            workload,
            "Provider registration %s %s",
            constants.PROVIDER_NAME,
            operation_result.value,
        )
        return ReconciliationResult.from_outcome(ReconcileOutcome.DONE)

    def safe_reconcile(
        self,
        workload: Union[ManagedObject, dict],
        context: Optional[ReconcileContext] = None,
    ) -> ReconciliationResult:
        """This function calls out to reconcile but catches any errors thrown.
        Every fault becomes a requeued result tagged ERRORED, or CANCELLED if
        the attempt was aborted.
        """
        context = context or ReconcileContext()
        try:
            return self.reconcile(workload, context)

        except ReconcileCancelledError as exc:
            self._log(log.info, context, workload, "Reconciliation cancelled: %s", exc)
            return ReconciliationResult.from_outcome(ReconcileOutcome.CANCELLED, exc)

        except OwnerNotFoundError as exc:
            self._log(
                log.error,
                context,
                workload,
                "Could not find %s owned by %s to own the registration: %s",
                constants.OWNER_KIND,
                constants.OLM_OWNER_KIND_VALUE,
                exc,
            )
            error = exc

        except DefinitionError as exc:
            self._log(
                log.error,
                context,
                workload,
                "Unusable registration definition: %s",
                exc,
            )
            error = exc

        # Capture all generic exceptions
        except Exception as exc:  # pylint: disable=broad-except
            if context.is_cancelled():
                self._log(
                    log.info,
                    context,
                    workload,
                    "Reconciliation aborted after cancellation: %s",
                    exc,
                )
                return ReconciliationResult.from_outcome(
                    ReconcileOutcome.CANCELLED, exc
                )
            self._log(
                log.warning,
                context,
                workload,
                "Handling caught error in reconcile: %s",
                exc,
                exc_info=True,
            )
            error = exc

        return ReconciliationResult.from_outcome(ReconcileOutcome.ERRORED, error)

    ## Implementation Details ##################################################

    @staticmethod
    def _log(log_fn, context, workload, message, *args, **kwargs):
        """Log with the triggering object and phase attached"""
        metadata = workload.get("metadata", {})
        phase = context.phase.value if context.phase else None
        log_fn(
            "[%s/%s] [%s] " + message,
            metadata.get("namespace"),
            metadata.get("name"),
            phase,
            *args,
            extra={
                "resource": _as_dict(workload),
                "phase": phase,
                "reconciliationId": context.reconciliation_id,
            },
            **kwargs,
        )


def _as_dict(workload: Union[ManagedObject, dict]) -> dict:
    if isinstance(workload, ManagedObject):
        return workload.definition
    return workload
