"""
The interface every cluster backend implements, plus the diff and mutation
helpers they share
"""

# Standard
from enum import Enum
from typing import Callable, Iterator, List, Optional, Tuple
import abc
import copy
import threading

# Third Party
from openshift.dynamic.apply import recursive_diff

# First Party
import alog

# Local
from ..exceptions import ClusterError
from .kube_event import KubeWatchEvent

log = alog.use_channel("DPLYMGR")

# Metadata fields maintained by the server that never count as a change
SERVER_MANAGED_METADATA = [
    "resourceVersion",
    "generation",
    "managedFields",
    "uid",
    "creationTimestamp",
]

# Signature of the mutation applied to an object inside create_or_update
MUTATE_FUNCTION = Callable[[dict], dict]


class OperationResult(Enum):
    """The outcome of a create_or_update call"""

    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"


class DeployManagerBase(abc.ABC):
    """
    Base class for deploy managers which are responsible for every read and
    write the operator performs against the cluster. All operations accept an
    optional timeout in seconds which bounds the individual cluster call.
    """

    @abc.abstractmethod
    def get_object_current_state(
        self,
        kind: str,
        name: str,
        namespace: Optional[str] = None,
        api_version: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> Tuple[bool, Optional[dict]]:
        """Read one object by name

        Args:
            kind:  str
                Kind of the object
            name:  str
                Name of the object
            namespace:  Optional[str]
                Namespace of the object, None when it is cluster scoped
            api_version:  Optional[str]
                apiVersion of the kind, None to accept any served version
            timeout:  Optional[float]
                Seconds allowed for the cluster call

        Returns:
            success:  bool
                False when the read was not permitted
            current_state:  Optional[dict]
                The object, or None when it does not exist
        """

    @abc.abstractmethod
    def filter_objects_current_state(  # pylint: disable=too-many-arguments
        self,
        kind: str,
        namespace: Optional[str] = None,
        api_version: Optional[str] = None,
        label_selector: Optional[str] = None,
        field_selector: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> Tuple[bool, List[dict]]:
        """List the objects of a kind that satisfy the label and field
        selectors. Success is False when the list was not permitted, and the
        list is empty when nothing matches.
        """

    @abc.abstractmethod
    def watch_objects(  # pylint: disable=too-many-arguments
        self,
        kind: str,
        api_version: Optional[str] = None,
        namespace: Optional[str] = None,
        name: Optional[str] = None,
        label_selector: Optional[str] = None,
        field_selector: Optional[str] = None,
        resource_version: Optional[str] = None,
        watch_manager=None,
    ) -> Iterator[KubeWatchEvent]:
        """Stream KubeWatchEvents for a kind until the given kubernetes Watch
        is stopped
        """

    @abc.abstractmethod
    def get_served_kinds(
        self,
        group_version: str,
        timeout: Optional[float] = None,
    ) -> Optional[List[str]]:
        """Query API discovery for the kinds served under a group/version. The
        result is never cached since types can be installed at any time.

        Args:
            group_version:  str
                The group/version to look up (e.g. apps/v1)
            timeout:  Optional[float]
                Timeout for the discovery call

        Returns:
            kinds:  Optional[List[str]]
                The kinds served under the group/version, or None if the
                group/version itself is not served
        """

    @abc.abstractmethod
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
        """Create the object if absent or update it if the mutated state
        differs from the stored state. The mutate function receives a copy of
        the current object (or an identity-only skeleton when absent) and
        returns the desired object. It may be called more than once when a
        write conflict forces a retry, so it must be idempotent. The timeout
        bounds the whole call including retries. A set cancel_event stops any
        further retry with ReconcileCancelledError.

        Returns:
            result:  OperationResult
                Whether the object was created, updated or left unchanged
        """

    ## Shared Implementation ###################################################

    @staticmethod
    def _build_desired(  # pylint: disable=too-many-arguments
        current: Optional[dict],
        kind: str,
        api_version: str,
        name: str,
        namespace: Optional[str],
        mutate: MUTATE_FUNCTION,
    ) -> dict:
        """Run the mutate function against the current state and make sure it
        left the object's identity alone
        """
        if current is None:
            metadata = {"name": name}
            if namespace:
                metadata["namespace"] = namespace
            base = {"apiVersion": api_version, "kind": kind, "metadata": metadata}
        else:
            base = copy.deepcopy(current)

        desired = mutate(base)
        desired_metadata = desired.get("metadata", {})
        if (
            desired.get("kind") != kind
            or desired.get("apiVersion") != api_version
            or desired_metadata.get("name") != name
            or desired_metadata.get("namespace") != (namespace or None)
        ):
            raise ClusterError(
                f"Mutation changed the identity of {api_version}/{kind}/{name}"
            )
        return desired

    @staticmethod
    def _clean_manifest(manifest: dict) -> dict:
        """Copy a manifest without the fields that change on every write"""
        manifest = copy.deepcopy(manifest)
        for metadata_field in SERVER_MANAGED_METADATA:
            manifest.get("metadata", {}).pop(metadata_field, None)
        manifest.pop("status", None)
        return manifest

    @classmethod
    def _manifest_diff(cls, manifest_a: dict, manifest_b: dict) -> bool:
        """Whether two manifests differ once server managed fields and status
        are stripped
        """
        diff = recursive_diff(
            cls._clean_manifest(manifest_a),
            cls._clean_manifest(manifest_b),
        )
        change = bool(diff)
        log.debug2("Found change? %s", change)
        log.debug3("A: %s", manifest_a)
        log.debug3("B: %s", manifest_b)
        return change
