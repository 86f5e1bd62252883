"""
The WatchThread streams cluster events for one kind and turns the admitted
ones into reconcile requests
"""
# Standard
from typing import TYPE_CHECKING, Callable, Dict, Optional

# Third Party
from kubernetes import watch

# First Party
import alog

# Local
from ... import config
from ...deploy_manager import DeployManagerBase, KubeEventType, KubeWatchEvent
from ...utils import parse_time_delta
from ..filters import FilterManager
from ..utils import ReconcileRequest
from .base import ThreadBase

if TYPE_CHECKING:
    # Local
    from .reconcile import ReconcileThread

log = alog.use_channel("WTCHTHRD")


class WatchThread(ThreadBase):  # pylint: disable=too-many-instance-attributes
    """Watches one apiVersion/kind, either in one namespace or cluster wide.
    A broken watch is restarted after config.watch_retry_delay, at most
    config.watch_retry_count times, after which on_failure is called and the
    thread exits.
    """

    def __init__(  # pylint: disable=too-many-arguments
        self,
        reconcile_thread: "ReconcileThread",
        kind: str,
        api_version: str,
        admission_filter: FilterManager,
        namespace: Optional[str] = None,
        deploy_manager: Optional[DeployManagerBase] = None,
        on_failure: Optional[Callable[[], None]] = None,
    ):
        """
        Args:
            reconcile_thread:  ReconcileThread
                Receives a request for every admitted event
            kind:  str
                The kind to watch
            api_version:  str
                The apiVersion of the kind
            admission_filter:  FilterManager
                Events that fail this filter are dropped
            namespace:  Optional[str]
                Namespace to watch, or None for the whole cluster
            deploy_manager:  Optional[DeployManagerBase]
                The cluster to watch
            on_failure:  Optional[Callable[[], None]]
                Called when the watch gives up
        """
        name_parts = ["watch_thread", api_version, kind]
        if namespace:
            name_parts.append(namespace)
        super().__init__(
            name="_".join(name_parts), daemon=True, deploy_manager=deploy_manager
        )

        self.reconcile_thread = reconcile_thread
        self.kind = kind
        self.api_version = api_version
        self.namespace = namespace
        self.admission_filter = admission_filter
        self.on_failure = on_failure

        # Last seen resourceVersion of every live object the watch has
        # reported. A relisted object already in here is not admitted again
        self.watched_resources: Dict[str, Optional[str]] = {}

        self.kubernetes_watch = watch.Watch()
        self.attempts_left = config.watch_retry_count
        self.retry_delay = parse_time_delta(config.watch_retry_delay)

    def run(self):
        resource_version = 0
        while not self.should_stop():
            try:
                for event in self.deploy_manager.watch_objects(
                    self.kind,
                    self.api_version,
                    namespace=self.namespace,
                    resource_version=resource_version,
                    watch_manager=self.kubernetes_watch,
                ):
                    if self.should_stop():
                        break
                    self._handle_event(event)
            except Exception as exc:  # pylint: disable=broad-except
                log.info(
                    "Watch of %s/%s failed: %s",
                    self.api_version,
                    self.kind,
                    repr(exc),
                    exc_info=exc,
                )
                if not self._wait_for_retry():
                    return

            # Resume from the last seen version when the stream restarts
            resource_version = self.kubernetes_watch.resource_version or 0
        log.debug("Watch thread stopped. Shutting down")

    def stop_thread(self):
        """Stop the kubernetes Watch too so a blocked stream returns"""
        super().stop_thread()
        self.kubernetes_watch.stop()

    ## Implementation Details ##################################################

    def _handle_event(self, event: KubeWatchEvent):
        resource = event.resource
        already_seen = resource.uid in self.watched_resources
        if event.type == KubeEventType.DELETED:
            self.watched_resources.pop(resource.uid, None)
        else:
            self.watched_resources[resource.uid] = resource.resource_version

        if already_seen and event.type == KubeEventType.ADDED:
            log.debug2("Skipping relisted ADDED event for %s", resource)
            return
        if not self.admission_filter.test(resource, event.type):
            log.debug2("Skipping event %s that failed filters", event)
            return

        log.debug(
            "Requesting reconcile for %s",
            resource,
            extra={"resource": resource.definition},
        )
        self.reconcile_thread.push_request(
            ReconcileRequest(type=event.type, resource=resource)
        )

    def _wait_for_retry(self) -> bool:
        """Use up one retry attempt. Returns False when the thread should exit
        instead, either because attempts ran out or because it was stopped
        while waiting.
        """
        if self.attempts_left <= 0:
            log.error(
                "Unable to restart watch of %s/%s within %d attempts",
                self.api_version,
                self.kind,
                config.watch_retry_count,
            )
            if self.on_failure:
                self.on_failure()
            return False

        if not self.wait_on_shutdown(self.retry_delay.total_seconds()):
            log.debug("Watch thread stopped during retry")
            return False

        self.attempts_left -= 1
        log.info("Restarting watch with %d attempts left", self.attempts_left)
        return True
