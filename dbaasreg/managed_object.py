"""
Wrapper for a single object seen on a watch stream
"""
# Standard
import uuid


class ManagedObject:
    """A watched kubernetes object. Two instances are equal when they describe
    the same cluster object, so the uid is the key used to serialize
    reconciles. An object without a uid gets a random one and is never equal
    to another.
    """

    def __init__(self, definition: dict):
        self.definition = definition
        self.api_version = definition.get("apiVersion")
        self.kind = definition.get("kind")
        self.metadata = definition.get("metadata") or {}
        self.name = self.metadata.get("name")
        self.namespace = self.metadata.get("namespace")
        self.labels = self.metadata.get("labels") or {}
        self.resource_version = self.metadata.get("resourceVersion")
        self.uid = self.metadata.get("uid") or str(uuid.uuid4())

        assert self.api_version, "No apiVersion found"
        assert self.kind, "No kind found"
        assert self.name, "No name found"

    def get(self, *args, **kwargs):
        """Read from the underlying manifest"""
        return self.definition.get(*args, **kwargs)

    def __str__(self):
        return f"{self.api_version}/{self.kind}/{self.name}"

    __repr__ = __str__

    def __hash__(self):
        return hash(self.uid)

    def __eq__(self, other):
        return isinstance(other, ManagedObject) and self.uid == other.uid
