"""
Shared test config
"""
# Standard
from unittest import mock

# Third Party
import pytest

# Local
from dbaasreg.test_helpers.helpers import (
    configure_logging,
    setup_cluster_role,
    setup_deploy_manager,
    setup_deployment,
    setup_operator_config,
    write_definition,
)

configure_logging()


@pytest.fixture(autouse=True)
def no_local_kubeconfig():
    """This fixture makes sure the tests run as if KUBECONFIG is not exported in
    the environment, even if it is
    """
    with mock.patch(
        "kubernetes.config.new_client_from_config", side_effect=RuntimeError
    ):
        yield


@pytest.fixture
def definition_path(tmp_path):
    """A valid definition file in a temporary directory"""
    return write_definition(tmp_path)


@pytest.fixture
def operator_config(definition_path):
    return setup_operator_config(definition_path=definition_path)


@pytest.fixture
def deployment():
    return setup_deployment()


@pytest.fixture
def cluster_role():
    return setup_cluster_role("rds-dbaas-operator.v0.1.0-abcde")


@pytest.fixture
def deploy_manager(deployment, cluster_role):
    """A dry run cluster holding the operator's Deployment and ClusterRole with
    the provider type served
    """
    return setup_deploy_manager(resources=[deployment, cluster_role])
