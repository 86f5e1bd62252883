"""
This module implements custom exceptions
"""

# Local
from . import constants

## Base Error ##################################################################


class DbaasRegError(Exception):
    """Base class for all dbaasreg exceptions"""

    def __init__(self, message: str, is_fatal_error: bool):
        """Construct with a flag indicating whether this is a fatal error. This
        will be a static property of all children.
        """
        super().__init__(message)
        self._is_fatal_error = is_fatal_error

    @property
    def is_fatal_error(self):
        """Property indicating whether or not this error should signal a fatal
        state for the current reconciliation
        """
        return self._is_fatal_error


## Fatal Errors ################################################################


class DbaasRegFatalError(DbaasRegError):
    """A DbaasRegFatalError is one that indicates an unexpected failure during
    a reconciliation. The reconciliation is abandoned and requeued with the
    default backoff.
    """

    def __init__(self, message: str = ""):
        super().__init__(message=message, is_fatal_error=True)


class ConfigError(DbaasRegFatalError):
    """Exception caused by missing or invalid process configuration"""


class ClusterError(DbaasRegFatalError):
    """Exception caused when a cluster operation fails in an unexpected way"""


class DefinitionError(DbaasRegFatalError):
    """Exception caused when the bundled resource definition cannot be read or
    parsed
    """

    def __init__(self, message: str = "", path: str = None):
        self.path = path
        super().__init__(message)


class OwnerNotFoundError(DbaasRegFatalError):
    """Not-found error raised when no owner candidate exists for the provider
    registration. It mirrors the shape of a kubernetes NotFound status by
    carrying the group, resource and name that were looked up.
    """

    def __init__(
        self,
        group: str = constants.OWNER_GROUP,
        resource: str = constants.OWNER_KIND,
        name: str = constants.MISSING_OWNER_NAME,
    ):
        self.group = group
        self.resource = resource
        self.name = name
        self.reason = "NotFound"
        super().__init__(f'{resource}.{group} "{name}" not found')


## Expected Errors #############################################################


class DbaasRegExpectedError(DbaasRegError):
    """A DbaasRegExpectedError is one that indicates an expected failure
    condition that should cause a reconciliation to terminate, but is expected
    to resolve in a subsequent reconciliation.
    """

    def __init__(self, message: str = ""):
        super().__init__(message=message, is_fatal_error=False)


class ReconcileCancelledError(DbaasRegExpectedError):
    """Exception raised when a reconciliation is aborted because the dispatcher
    cancelled it or its deadline passed
    """

    def __init__(self, message: str = "", phase: str = None):
        self.phase = phase
        super().__init__(message)


## Assertions ##################################################################


def assert_config(condition: bool, message: str = ""):
    """Replacement for assert() which will throw a ConfigError. This should be
    used when validating the operator's startup configuration.
    """
    if not condition:
        raise ConfigError(message)


def assert_cluster(condition: bool, message: str = ""):
    """Replacement for assert() which will throw a ClusterError. This should
    be used when an operation in the cluster (such as fetching the current
    state of an object) must succeed.
    """
    if not condition:
        raise ClusterError(message)
