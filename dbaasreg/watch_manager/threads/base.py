"""
Common start/stop handling for the watch manager threads
"""

# Standard
from typing import Optional
import threading

# First Party
import alog

# Local
from ...deploy_manager import DeployManagerBase

log = alog.use_channel("TRDUTLS")


class ThreadBase(threading.Thread):
    """A thread with a shutdown event. Subclasses implement run and poll
    should_stop (or block in wait_on_shutdown) to exit promptly.
    """

    def __init__(
        self,
        name: Optional[str] = None,
        daemon: Optional[bool] = None,
        deploy_manager: Optional[DeployManagerBase] = None,
    ):
        """
        Args:
            name:  Optional[str]
                Thread name, shown in logs when thread ids are enabled
            daemon:  Optional[bool]
                Whether the interpreter may exit while this thread runs
            deploy_manager:  Optional[DeployManagerBase]
                Cluster access for threads that need it
        """
        super().__init__(name=name, daemon=daemon)
        self.deploy_manager = deploy_manager
        self.shutdown = threading.Event()

    def run(self):
        raise NotImplementedError()

    def start_thread(self):
        """Start the thread unless it is already running"""
        if self.is_alive():
            return
        log.info("Starting %s [%s]", type(self).__name__, self.name)
        self.start()

    def stop_thread(self):
        """Signal shutdown. Subclasses extend this to wake their loop"""
        log.info("Stopping %s [%s]", type(self).__name__, self.name)
        self.shutdown.set()

    def should_stop(self) -> bool:
        return self.shutdown.is_set()

    def wait_on_shutdown(self, timeout: float) -> bool:
        """Sleep up to timeout seconds and return False if shutdown was
        signaled in the meantime
        """
        return not self.shutdown.wait(timeout)
