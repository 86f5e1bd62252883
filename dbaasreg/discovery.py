"""
Check whether an API type is currently served by the cluster
"""

# Standard
from typing import Optional

# First Party
import alog

# Local
from .deploy_manager import DeployManagerBase

log = alog.use_channel("DSCVRY")


def is_kind_available(
    deploy_manager: DeployManagerBase,
    group_version: str,
    kind: str,
    timeout: Optional[float] = None,
) -> bool:
    """Determine whether the given kind is served under group_version. A
    group/version that is not served at all means the type is not installed
    yet and is reported as False. Any other discovery fault propagates.

    Args:
        deploy_manager:  DeployManagerBase
            The deploy manager used for the discovery query
        group_version:  str
            The group/version to look in (e.g. dbaas.redhat.com/v1beta1)
        kind:  str
            The kind that must be served, matched exactly
        timeout:  Optional[float]
            Timeout for the discovery call

    Returns:
        available:  bool
            True only if the kind is found among the served kinds
    """
    served_kinds = deploy_manager.get_served_kinds(group_version, timeout=timeout)
    if served_kinds is None:
        log.debug("Group/version [%s] not found in discovery", group_version)
        return False

    available = kind in served_kinds
    log.debug2("Kind [%s/%s] available? %s", group_version, kind, available)
    return available
