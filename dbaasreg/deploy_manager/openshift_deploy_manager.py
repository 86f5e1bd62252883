"""
The live DeployManager. Every cluster call for the provider registration goes
through the openshift DynamicClient, which works both inside the cluster and
from a workstation with a kubeconfig.
"""
# Standard
from typing import Iterator, List, Optional, Tuple
import threading
import time

# Third Party
from kubernetes import client
from kubernetes.watch import Watch
from openshift.dynamic import DynamicClient
from openshift.dynamic.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ResourceNotFoundError,
    ResourceNotUniqueError,
)
from openshift.dynamic.resource import Resource
import kubernetes
import urllib3

# First Party
import alog

# Local
from .. import config
from ..exceptions import ReconcileCancelledError, assert_cluster
from ..managed_object import ManagedObject
from .base import MUTATE_FUNCTION, DeployManagerBase, OperationResult
from .kube_event import KubeEventType, KubeWatchEvent

log = alog.use_channel("OSFTD")

## Constants ###################################################################

# Server and client side watch timeouts, following
# https://github.com/kubernetes-client/python/blob/master/examples/watch/
# timeout-settings.md
SERVER_WATCH_TIMEOUT = 3600
CLIENT_WATCH_TIMEOUT = 30

# The legacy core group lives under a different discovery root
CORE_GROUP_VERSION = "v1"

# HTTP status sent when the requested resourceVersion is too old to watch from
GONE_STATUS = 410


class OpenshiftDeployManager(DeployManagerBase):
    """DeployManager backed by the openshift DynamicClient"""

    def __init__(self, dynamic_client: Optional[DynamicClient] = None):
        """
        Args:
            dynamic_client:  Optional[DynamicClient]
                A preconfigured client. If not given, one is created lazily
                from in-cluster config or the local kubeconfig
        """
        self._client = dynamic_client

    @property
    def client(self) -> DynamicClient:
        if self._client is None:
            self._client = self._connect()
        return self._client

    ## Reads ###################################################################

    def get_object_current_state(
        self,
        kind: str,
        name: str,
        namespace: Optional[str] = None,
        api_version: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> Tuple[bool, Optional[dict]]:
        """Fetch a single object. An unknown kind and a missing object both
        give (True, None). A forbidden read gives (False, None). Any other API
        error is raised.
        """
        success, found = self._read(
            kind,
            api_version,
            namespace,
            name=name,
            namespace=namespace,
            _request_timeout=timeout,
        )
        return success, (found.to_dict() if found is not None else None)

    def filter_objects_current_state(  # pylint: disable=too-many-arguments
        self,
        kind: str,
        namespace: Optional[str] = None,
        api_version: Optional[str] = None,
        label_selector: Optional[str] = None,
        field_selector: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> Tuple[bool, List[dict]]:
        """List the objects of a kind matching the selectors, in the order the
        server returns them
        """
        success, found = self._read(
            kind,
            api_version,
            namespace,
            label_selector=label_selector,
            field_selector=field_selector,
            namespace=namespace,
            _request_timeout=timeout,
        )
        if found is None:
            return success, []
        return success, found.to_dict().get("items", [])

    def get_served_kinds(
        self,
        group_version: str,
        timeout: Optional[float] = None,
    ) -> Optional[List[str]]:
        """Read the discovery document of one group/version straight from the
        server, so a type installed after startup shows up on the next call.
        None means the group/version is not served.
        """
        root = "/api" if group_version == CORE_GROUP_VERSION else "/apis"
        path = f"{root}/{group_version}"
        log.debug2("Querying API discovery at [%s]", path)
        try:
            response = self.client.request("GET", path, _request_timeout=timeout)
        except NotFoundError:
            log.debug("Group/version [%s] is not served", group_version)
            return None

        kinds = [entry.get("kind") for entry in response.to_dict().get("resources", [])]
        log.debug3("Kinds served by [%s]: %s", group_version, kinds)
        return kinds

    def watch_objects(  # pylint: disable=too-many-arguments
        self,
        kind: str,
        api_version: Optional[str] = None,
        namespace: Optional[str] = None,
        name: Optional[str] = None,
        label_selector: Optional[str] = None,
        field_selector: Optional[str] = None,
        resource_version: Optional[str] = None,
        watch_manager: Optional[Watch] = None,
    ) -> Iterator[KubeWatchEvent]:
        """Stream events for a kind. Socket timeouts, broken chunks and server
        side timeouts restart the stream from the last resourceVersion the
        Watch saw. Only an expired resourceVersion relists from scratch. The
        generator returns once the given Watch is stopped.
        """
        watch_manager = watch_manager or Watch()
        resources = self._get_resource_handle(kind, api_version)
        assert_cluster(
            resources,
            f"Failed to fetch resource handle for {namespace}/{api_version}/{kind}",
        )

        resource_version = resource_version or 0
        while True:
            try:
                for raw_event in watch_manager.stream(
                    resources.get,
                    resource_version=resource_version,
                    namespace=namespace,
                    name=name,
                    label_selector=label_selector,
                    field_selector=field_selector,
                    serialize=False,
                    timeout_seconds=SERVER_WATCH_TIMEOUT,
                    _request_timeout=CLIENT_WATCH_TIMEOUT,
                ):
                    yield KubeWatchEvent(
                        KubeEventType(raw_event["type"]),
                        ManagedObject(raw_event["object"]),
                    )
            except client.exceptions.ApiException as err:
                if err.status != GONE_STATUS:
                    raise
                log.debug2("Watch of %s/%s expired, relisting", api_version, kind)
                resource_version = None
            except urllib3.exceptions.ReadTimeoutError:
                log.debug4("Watch socket of %s/%s timed out", api_version, kind)
                resource_version = watch_manager.resource_version
            except urllib3.exceptions.ProtocolError:
                log.debug2("Bad chunk on watch of %s/%s", api_version, kind)
                resource_version = watch_manager.resource_version
            else:
                # The server closed the stream after its timeout
                resource_version = watch_manager.resource_version

            if watch_manager._stop:  # pylint: disable=protected-access
                log.debug("Watch of %s/%s stopped", api_version, kind)
                return
            log.debug3(
                "Restarting watch of %s/%s from resourceVersion %s",
                api_version,
                kind,
                resource_version,
            )

    ## Writes ##################################################################

    @alog.logged_function(log.debug)
    def create_or_update(  # pylint: disable=too-many-arguments
        self,
        kind: str,
        api_version: str,
        name: str,
        mutate: MUTATE_FUNCTION,
        namespace: Optional[str] = None,
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> OperationResult:
        """Create or update a single object with optimistic concurrency. On a
        write conflict the current state is fetched again and the mutation is
        re-applied, up to config.deploy_retries times. The timeout covers all
        attempts together, and each retry first checks the cancel event and
        the time left.
        """
        deadline = time.monotonic() + timeout if timeout is not None else None
        attempt = 0
        while True:
            try:
                return self._create_or_update(
                    kind=kind,
                    api_version=api_version,
                    name=name,
                    mutate=mutate,
                    namespace=namespace,
                    timeout=self._time_left(deadline),
                )
            except ConflictError as err:
                log.debug2("Handling ConflictError: %s", err)
                if attempt >= config.deploy_retries:
                    raise
            attempt += 1
            self._wait_before_retry(
                config.retry_backoff_base_seconds * attempt, deadline, cancel_event
            )

    ## Implementation Helpers ##################################################

    @staticmethod
    def _connect() -> DynamicClient:
        """Build a client from the in-cluster service account, falling back to
        the local kubeconfig
        """
        try:
            kube_config = kubernetes.client.Configuration()
            kubernetes.config.load_incluster_config(client_configuration=kube_config)
            log.debug2("Using in-cluster config")
            return DynamicClient(kubernetes.client.ApiClient(kube_config))
        except kubernetes.config.ConfigException:
            log.debug2("Using local kubeconfig")
            return DynamicClient(kubernetes.config.new_client_from_config())

    def _get_resource_handle(
        self, kind: str, api_version: Optional[str]
    ) -> Optional[Resource]:
        """Look the kind up by name, then by short name"""
        for lookup in ({"kind": kind}, {"short_names": [kind]}):
            try:
                return self.client.resources.get(api_version=api_version, **lookup)
            except (ResourceNotFoundError, ResourceNotUniqueError):
                continue
        log.debug("No unique resource found for [%s/%s]", api_version, kind)
        return None

    def _read(self, kind, api_version, scope, **query):
        """Run a GET against the resource handle of a kind. Returns the success
        flag and the response, which is None when nothing was found.
        """
        resources = self._get_resource_handle(kind, api_version)
        if not resources:
            return True, None
        if not scope:
            resources.namespaced = False

        try:
            return True, resources.get(**query)
        except ForbiddenError:
            log.debug("Reading [%s] forbidden in namespace [%s]", kind, scope)
            return False, None
        except NotFoundError:
            log.debug("Nothing found for [%s] %s in [%s]", kind, query, scope)
            return True, None

    @staticmethod
    def _time_left(deadline: Optional[float]) -> Optional[float]:
        if deadline is None:
            return None
        return max(deadline - time.monotonic(), 0.0)

    @classmethod
    def _wait_before_retry(
        cls,
        delay: float,
        deadline: Optional[float],
        cancel_event: Optional[threading.Event],
    ):
        """Sleep through the linear backoff before the next write attempt.
        Raises ReconcileCancelledError if the attempt is cancelled while
        waiting or if no time would be left for the retry.
        """
        log.debug3("Retrying in %fs", delay)
        time_left = cls._time_left(deadline)
        if time_left is not None and time_left <= delay:
            raise ReconcileCancelledError(
                "No time left to retry the write after a conflict"
            )
        if cancel_event is None:
            time.sleep(delay)
        elif cancel_event.wait(delay):
            raise ReconcileCancelledError("Cancelled while retrying a write conflict")

    def _create_or_update(  # pylint: disable=too-many-arguments
        self,
        kind: str,
        api_version: str,
        name: str,
        mutate: MUTATE_FUNCTION,
        namespace: Optional[str],
        timeout: Optional[float],
    ) -> OperationResult:
        """One attempt of create_or_update against fresh cluster state"""
        object_path = f"{namespace}/{api_version}/{kind}/{name}"
        success, current = self.get_object_current_state(
            kind=kind,
            name=name,
            namespace=namespace,
            api_version=api_version,
            timeout=timeout,
        )
        assert_cluster(success, f"Failed to fetch current state for {object_path}")

        resources = self._get_resource_handle(kind, api_version)
        assert_cluster(resources, f"Failed to fetch resource handle for {object_path}")
        if not namespace:
            resources.namespaced = False

        desired = self._build_desired(
            current, kind, api_version, name, namespace, mutate
        )

        if current is None:
            log.debug2("Creating [%s]", object_path)
            resources.create(
                body=desired, namespace=namespace, _request_timeout=timeout
            )
            return OperationResult.CREATED

        if not self._manifest_diff(current, desired):
            log.debug2("No change for [%s]", object_path)
            return OperationResult.UNCHANGED

        # The body keeps the resourceVersion that was read so a concurrent
        # write surfaces as a ConflictError
        log.debug2("Updating [%s]", object_path)
        resources.replace(
            body=desired, name=name, namespace=namespace, _request_timeout=timeout
        )
        return OperationResult.UPDATED
