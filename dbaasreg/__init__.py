"""
Package exports
"""

# Local
from . import config, reconcile, watch_manager
from .deploy_manager import DeployManagerBase
from .exceptions import assert_cluster, assert_config
from .operator_config import OperatorConfig
from .reconcile import ProviderReconciler, ReconcileOutcome, ReconciliationResult
from .watch_manager import WatchManager
