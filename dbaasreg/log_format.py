"""
Json log format carrying the reconciliation context of each line
"""

# First Party
from alog import AlogJsonFormatter

# Record attributes copied from the triggering object's manifest
RESOURCE_FIELDS = {
    "kind": ("kind",),
    "apiVersion": ("apiVersion",),
    "resourceName": ("metadata", "name"),
    "namespace": ("metadata", "namespace"),
}


class DbaasRegJsonFormatter(AlogJsonFormatter):
    """AlogJsonFormatter that also prints the object that triggered a
    reconciliation, the current phase and the reconciliationId. Pass the
    manifest as extra={"resource": ...} to fill in the object fields.
    """

    _FIELDS_TO_PRINT = AlogJsonFormatter._FIELDS_TO_PRINT + [
        "process",
        "thread",
        "threadName",
        *RESOURCE_FIELDS,
        "phase",
        "reconciliationId",
    ]

    def format(self, record):
        resource = getattr(record, "resource", None)
        if resource:
            for attr, path in RESOURCE_FIELDS.items():
                value = resource
                for key in path:
                    value = (value or {}).get(key)
                setattr(record, attr, value)
        return super().format(record)
