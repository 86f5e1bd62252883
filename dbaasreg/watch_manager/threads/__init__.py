"""Import the threads used by the WatchManager"""
# Local
from .base import ThreadBase
from .reconcile import ReconcileThread
from .timer import TimerThread
from .watch import WatchThread
