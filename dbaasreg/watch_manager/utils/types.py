"""Messages passed between the watch, reconcile and timer threads"""

# Standard
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Optional, Union

# Local
from ...deploy_manager import KubeEventType
from ...managed_object import ManagedObject
from ...reconcile import ReconciliationResult


class ReconcileRequestType(Enum):
    """Request types that do not come straight from a kube watch event"""

    # Sent by the timer when a requeue delay elapses
    REQUEUED = "REQUEUED"

    # Sentinel that ends the reconcile thread's loop
    STOPPED = "STOPPED"


@dataclass
class ReconcileRequest:
    """Ask the reconcile thread to reconcile one workload. The resource is
    None only for the STOPPED sentinel.
    """

    type: Union[ReconcileRequestType, KubeEventType]
    resource: Optional[ManagedObject]
    timestamp: datetime = field(default_factory=datetime.now)

    def uid(self) -> str:
        return self.resource.uid


@dataclass
class ReconcileCompletion:
    """Posted back onto the request queue by a worker once its attempt ends"""

    request: ReconcileRequest
    result: ReconciliationResult

    def uid(self) -> str:
        return self.request.uid()


@dataclass(order=True)
class TimerEvent:
    """A delayed action in the timer heap. Events sort by time alone. A
    cancelled event stays in the heap but is skipped when it comes due.
    """

    time: datetime
    action: Callable = field(compare=False)
    args: tuple = field(default_factory=tuple, compare=False)
    kwargs: dict = field(default_factory=dict, compare=False)
    stale: bool = field(default=False, compare=False)

    def cancel(self):
        self.stale = True
