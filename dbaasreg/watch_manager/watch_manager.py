"""
Thread based WatchManager that drives the provider registration
"""

# Standard
from typing import Optional
import threading

# First Party
import alog

# Local
from .. import constants
from ..deploy_manager import DeployManagerBase, OpenshiftDeployManager
from ..operator_config import OperatorConfig
from ..reconcile import ProviderReconciler
from .filters import get_admission_filter
from .rate_limiter import RetryPolicies
from .threads import ReconcileThread, WatchThread

log = alog.use_channel("WTCHMGR")


class WatchManager:
    """The WatchManager uses the kubernetes watch client to watch the
    operator's own Deployment and run the provider registration. It does the
    following two things

    1. Start a watch thread for Deployments in the install namespace
    2. Start a reconcile thread to run reconciles on a worker pool
    """

    def __init__(
        self,
        operator_config: OperatorConfig,
        deploy_manager: Optional[DeployManagerBase] = None,
        reconciler: Optional[ProviderReconciler] = None,
        retry_policies: Optional[RetryPolicies] = None,
    ):
        """Initialize the required threads

        Args:
            operator_config: OperatorConfig
                The identity of the running operator
            deploy_manager: Optional[DeployManagerBase] = None
                An optional DeployManager override
            reconciler: Optional[ProviderReconciler] = None
                An optional reconciler override
            retry_policies: Optional[RetryPolicies] = None
                An optional override of the requeue backoff policies
        """
        self.operator_config = operator_config

        # Handle functional args
        if deploy_manager is None:
            log.debug("Using OpenshiftDeployManager")
            deploy_manager = OpenshiftDeployManager()
        self.deploy_manager = deploy_manager
        self.reconciler = reconciler or ProviderReconciler(
            operator_config, deploy_manager
        )

        # Setup Control variables
        self.shutdown = threading.Event()
        self.failed = False

        # Setup Threads
        self.reconcile_thread = ReconcileThread(
            reconciler=self.reconciler,
            deploy_manager=self.deploy_manager,
            retry_policies=retry_policies,
        )
        self.watch_thread = WatchThread(
            reconcile_thread=self.reconcile_thread,
            kind=constants.WORKLOAD_KIND,
            api_version=constants.WORKLOAD_API_VERSION,
            admission_filter=get_admission_filter(operator_config),
            namespace=operator_config.install_namespace,
            deploy_manager=self.deploy_manager,
            on_failure=self._handle_watch_failure,
        )

    ## Interface ###############################################################

    def watch(self) -> bool:
        """Start all threads

        Returns:
            success:  bool
                True if all threads are running
        """
        log.info("Starting WatchManager: %s", self)

        # If watch has been shutdown then exit before starting threads
        if self.shutdown.is_set():
            return False

        self.reconcile_thread.start_thread()
        log.debug("Starting watch_thread: %s", self.watch_thread)
        self.watch_thread.start_thread()
        return True

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Wait for shutdown to be signaled

        Returns:
            stopped:  bool
                True if shutdown was signaled before the timeout
        """
        return self.shutdown.wait(timeout)

    def stop(self):
        """Stop all threads. Running reconciles are cancelled and this waits
        for them to finish
        """
        log.info("Stopping WatchManager for %s", self)
        self.shutdown.set()
        self.watch_thread.stop_thread()
        self.reconcile_thread.stop_thread()

    ## Helper Functions ###############################################################

    def _handle_watch_failure(self):
        log.error("Watch on %s failed permanently. Shutting down", self)
        self.failed = True
        self.shutdown.set()

    def __str__(self):
        return "{}/{} in {}".format(  # pylint: disable=consider-using-f-string
            constants.WORKLOAD_API_VERSION,
            constants.WORKLOAD_KIND,
            self.operator_config.install_namespace,
        )
