"""
Filters are used to limit the events that reach the reconciler. This is based
off of the kubernetes controller runtime's "predicates":
https://pkg.go.dev/sigs.k8s.io/controller-runtime/pkg/predicate#Funcs

Only the creation of the operator's own Deployment is admitted, so exactly one
reconciliation is triggered by watch events per operator start.
"""

# Standard
from abc import ABC, abstractmethod
from typing import Optional

# First Party
import alog

# Local
from ... import constants
from ...deploy_manager import KubeEventType
from ...managed_object import ManagedObject
from ...operator_config import OperatorConfig

log = alog.use_channel("WMFLT")


## Default Types


class Filter(ABC):
    """Generic Filter Interface for subclassing. Every subclass should implement
    a `test` function which returns true when a resource should be reconciled.
    A filter can optionally return None to ignore an event.
    """

    def __init__(self, operator_config: OperatorConfig):
        self.operator_config = operator_config

    @abstractmethod
    def test(self, resource: ManagedObject, event: KubeEventType) -> Optional[bool]:
        """Test whether the resource&event passes the filter

        Args:
            resource: ManagedObject
                The current resource being checked
            event: KubeEventType
                The event type that triggered this filter

        Returns:
            result: Optional[bool]
                The result of the test.
        """

    def __str__(self):
        return self.__class__.__name__


## Admission filters


class CreationFilter(Filter):
    """Filter that only passes ADDED events. Updates, deletions and any other
    event type are rejected.
    """

    def test(self, resource: ManagedObject, event: KubeEventType) -> Optional[bool]:
        return event == KubeEventType.ADDED


class InstallNamespaceFilter(Filter):
    """Filter that only passes objects in the operator's install namespace"""

    def test(self, resource: ManagedObject, event: KubeEventType) -> Optional[bool]:
        return resource.namespace == self.operator_config.install_namespace


class PackageOwnerFilter(Filter):
    """Filter that only passes objects the package manager installed for the
    running operator version
    """

    def test(self, resource: ManagedObject, event: KubeEventType) -> Optional[bool]:
        labels = resource.labels
        if labels.get(constants.OLM_OWNER_KIND_LABEL) != constants.OLM_OWNER_KIND_VALUE:
            log.debug3("Resource %s not owned by a package version", resource)
            return False
        return (
            labels.get(constants.OLM_OWNER_LABEL)
            == self.operator_config.operator_name_version
        )
