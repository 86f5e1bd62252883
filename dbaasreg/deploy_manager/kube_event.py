"""
Events delivered by a deploy manager watch
"""

# Standard
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

# Local
from ..managed_object import ManagedObject


class KubeEventType(Enum):
    """The event types a kubernetes watch stream carries"""

    ADDED = "ADDED"
    MODIFIED = "MODIFIED"
    DELETED = "DELETED"


@dataclass
class KubeWatchEvent:
    """One event off a watch stream and the time it was received"""

    type: KubeEventType
    resource: ManagedObject
    timestamp: datetime = field(default_factory=datetime.now)
