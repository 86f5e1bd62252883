"""
Tests for the WatchManager
"""
# Standard
from unittest import mock

# Third Party
import pytest

# Local
from dbaasreg import constants
from dbaasreg.test_helpers.dispatch_helpers import fast_retry_policies
from dbaasreg.test_helpers.helpers import (
    TEST_SPEC,
    get_provider,
    library_config,
    setup_deploy_manager,
    wait_for,
)
from dbaasreg.watch_manager import WatchManager

## Helpers #####################################################################


def provider_exists(deploy_manager):
    return get_provider(deploy_manager) is not None


@pytest.mark.timeout(10)
def test_watch_manager_registers_provider(operator_config, deploy_manager):
    """Make sure the operator's own Deployment results in the registration"""
    watch_manager = WatchManager(operator_config, deploy_manager=deploy_manager)
    try:
        assert watch_manager.watch()
        assert wait_for(lambda: provider_exists(deploy_manager))
    finally:
        watch_manager.stop()

    provider = get_provider(deploy_manager)
    assert provider["spec"] == TEST_SPEC
    assert provider["metadata"]["labels"] == constants.PROVIDER_LABELS
    assert not watch_manager.failed
    assert watch_manager.wait(0)


@pytest.mark.timeout(10)
def test_watch_manager_waits_for_type(
    operator_config, deployment, cluster_role
):
    """Make sure the registration is created once the type becomes served"""
    deploy_manager = setup_deploy_manager(
        resources=[deployment, cluster_role], serve_provider_type=False
    )
    watch_manager = WatchManager(
        operator_config,
        deploy_manager=deploy_manager,
        retry_policies=fast_retry_policies(),
    )
    try:
        watch_manager.watch()
        assert wait_for(
            lambda: watch_manager.reconcile_thread.event_map, timeout=5
        )
        assert not provider_exists(deploy_manager)

        deploy_manager.register_api_kind(
            constants.PROVIDER_API_VERSION, constants.PROVIDER_KIND
        )
        assert wait_for(lambda: provider_exists(deploy_manager))
    finally:
        watch_manager.stop()


@pytest.mark.timeout(10)
def test_watch_manager_watch_failure(operator_config, deploy_manager):
    """Make sure a watch that cannot be restarted stops the manager as failed"""
    with mock.patch.object(
        deploy_manager, "watch_objects", side_effect=RuntimeError("no watch")
    ), library_config(watch_retry_count=0, watch_retry_delay="0.01s"):
        watch_manager = WatchManager(operator_config, deploy_manager=deploy_manager)
        watch_manager.watch()
        assert watch_manager.wait(5)
    watch_manager.stop()
    assert watch_manager.failed


def test_watch_manager_stopped_before_watch(operator_config, deploy_manager):
    """Make sure a stopped manager refuses to start"""
    watch_manager = WatchManager(operator_config, deploy_manager=deploy_manager)
    watch_manager.stop()
    assert not watch_manager.watch()
    assert not watch_manager.reconcile_thread.is_alive()


def test_watch_manager_str(operator_config, deploy_manager):
    watch_manager = WatchManager(operator_config, deploy_manager=deploy_manager)
    assert str(watch_manager) == "apps/v1/Deployment in test-operators"
