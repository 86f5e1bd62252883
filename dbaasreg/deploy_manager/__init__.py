"""
The deploy_manager module holds the interface and implementations for all
cluster access performed by the operator
"""

# Local
from .base import DeployManagerBase, OperationResult
from .dry_run_deploy_manager import DryRunDeployManager
from .kube_event import KubeEventType, KubeWatchEvent
from .openshift_deploy_manager import OpenshiftDeployManager
