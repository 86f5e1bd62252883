"""Filters used to admit watch events for reconciliation"""
# Local
from ...operator_config import OperatorConfig
from .filters import CreationFilter, Filter, InstallNamespaceFilter, PackageOwnerFilter
from .manager import AndFilter, FilterManager, OrFilter

# The creation of the operator's own Deployment
ADMISSION_FILTER = AndFilter(CreationFilter, InstallNamespaceFilter, PackageOwnerFilter)


def get_admission_filter(operator_config: OperatorConfig) -> FilterManager:
    """Build the filter that decides which Deployment events are reconciled"""
    return FilterManager(ADMISSION_FILTER, operator_config)
