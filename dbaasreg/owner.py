"""
Resolve the object that owns the provider registration for garbage collection
"""

# Standard
from typing import Optional

# First Party
import alog

# Local
from . import constants
from .deploy_manager import DeployManagerBase
from .exceptions import OwnerNotFoundError, assert_cluster
from .operator_config import OperatorConfig

log = alog.use_channel("OWNER")


def find_owner(
    deploy_manager: DeployManagerBase,
    operator_config: OperatorConfig,
    timeout: Optional[float] = None,
) -> dict:
    """Find the ClusterRole that the package manager installed for this
    operator version. When several candidates exist the one with the
    lexicographically smallest name is chosen so the choice is stable across
    calls.

    Args:
        deploy_manager:  DeployManagerBase
            The deploy manager used to list the candidates
        operator_config:  OperatorConfig
            The identity of the running operator
        timeout:  Optional[float]
            Timeout for the list call

    Returns:
        owner:  dict
            The full manifest of the chosen ClusterRole

    Raises:
        OwnerNotFoundError: If no candidate exists
        ClusterError: If the list call is not permitted
    """
    label_selector = operator_config.owner_label_selector
    success, candidates = deploy_manager.filter_objects_current_state(
        kind=constants.OWNER_KIND,
        api_version=constants.OWNER_API_VERSION,
        label_selector=label_selector,
        timeout=timeout,
    )
    assert_cluster(
        success,
        f"Unable to list {constants.OWNER_KIND} objects matching [{label_selector}]",
    )

    if not candidates:
        log.warning(
            "No %s found matching [%s]", constants.OWNER_KIND, label_selector
        )
        raise OwnerNotFoundError()

    candidates = sorted(
        candidates, key=lambda candidate: candidate["metadata"]["name"]
    )
    owner = candidates[0]

    # List items from the server don't carry their own kind or apiVersion
    owner.setdefault("apiVersion", constants.OWNER_API_VERSION)
    owner.setdefault("kind", constants.OWNER_KIND)
    log.debug(
        "Selected owner [%s] out of %d candidates",
        owner["metadata"]["name"],
        len(candidates),
    )
    return owner
