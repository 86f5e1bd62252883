"""
This module holds common functionality for building the ownerReferences that
link a dependent object to the parent whose deletion should cascade to it
"""

# First Party
import alog

log = alog.use_channel("OWNRF")


def make_owner_reference(
    owner: dict,
    controller: bool = True,
    block_owner_deletion: bool = False,
) -> dict:
    """Make an owner reference pointing at the given owner object

    Args:
        owner:  dict
            The full manifest for the owning resource. It must carry kind,
            apiVersion, metadata.name and metadata.uid
        controller:  bool
            Whether the owner is the managing controller of the dependent
        block_owner_deletion:  bool
            Whether the owner's foreground deletion waits for the dependent

    Returns:
        owner_reference:  dict
            The dict entry for the `metadata.ownerReferences` entry of the owned
            object
    """
    _validate_owner_struct(owner)
    metadata = owner["metadata"]
    owner_ref = {
        "apiVersion": owner["apiVersion"],
        "kind": owner["kind"],
        "name": metadata["name"],
        "uid": metadata["uid"],
        "controller": controller,
        "blockOwnerDeletion": block_owner_deletion,
    }
    log.debug3("Built owner reference: %s", owner_ref)
    return owner_ref


## Implementation Details ######################################################


def _validate_owner_struct(obj: dict):
    """Ensure that the portions of an owner needed for a reference are present
    (kind, apiVersion, metadata.name, metadata.uid)
    """
    assert "kind" in obj, "Got owner without 'kind'"
    assert "apiVersion" in obj, "Got owner without 'apiVersion'"
    metadata = obj.get("metadata")
    assert isinstance(metadata, dict), "Got owner with non-dict 'metadata'"
    assert "name" in metadata, "Got owner without 'metadata.name'"
    assert "uid" in metadata, "Got owner without 'metadata.uid'"
