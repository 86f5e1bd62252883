"""
Build the desired state of the provider registration
"""

# Standard
import copy

# First Party
import alog

# Local
from . import constants
from .definition import ResourceDefinition
from .deploy_manager.owner_references import make_owner_reference

log = alog.use_channel("REGSTR")


def build_desired_provider(
    existing: dict,
    definition: ResourceDefinition,
    owner: dict,
) -> dict:
    """Compute the desired provider registration from its current state. The
    labels and owner references are overwritten as a whole and the spec is
    copied from the definition. Everything else on the existing object is
    kept. None of the inputs are modified, so repeated calls with the same
    inputs give the same result.

    Args:
        existing:  dict
            The current object, or an identity-only skeleton if it is absent
        definition:  ResourceDefinition
            The loaded registration definition
        owner:  dict
            The manifest of the owning ClusterRole

    Returns:
        desired:  dict
            The object that should be stored
    """
    desired = copy.deepcopy(existing)
    metadata = desired.setdefault("metadata", {})
    metadata["labels"] = dict(constants.PROVIDER_LABELS)
    metadata["ownerReferences"] = [
        make_owner_reference(owner, controller=True, block_owner_deletion=False)
    ]
    desired["spec"] = copy.deepcopy(definition.spec)
    log.debug4("Desired provider registration: %s", desired)
    return desired
