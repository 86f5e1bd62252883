""" Import all functions, constants, and classes from the utils module """
# Local
from .constants import MAX_BACKOFF_EXPONENT, MIN_SLEEP_TIME, STOP_JOIN_TIMEOUT
from .types import (
    ReconcileCompletion,
    ReconcileRequest,
    ReconcileRequestType,
    TimerEvent,
)
