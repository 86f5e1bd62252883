"""
Tests for the API type availability check
"""
# Standard
from unittest import mock

# Third Party
import pytest

# Local
from dbaasreg.deploy_manager import DryRunDeployManager
from dbaasreg.discovery import is_kind_available


def test_kind_available():
    """Make sure a registered kind is reported as available"""
    dm = DryRunDeployManager()
    dm.register_api_kind("dbaas.redhat.com/v1beta1", "DBaaSProvider")
    assert is_kind_available(dm, "dbaas.redhat.com/v1beta1", "DBaaSProvider")


def test_group_version_not_served():
    """Make sure an unknown group/version is not an error"""
    dm = DryRunDeployManager()
    assert not is_kind_available(dm, "dbaas.redhat.com/v1beta1", "DBaaSProvider")


def test_kind_missing_from_served_group():
    """Make sure a served group/version without the kind is unavailable"""
    dm = DryRunDeployManager()
    dm.register_api_kind("dbaas.redhat.com/v1beta1", "DBaaSInventory")
    assert not is_kind_available(dm, "dbaas.redhat.com/v1beta1", "DBaaSProvider")


def test_kind_match_is_exact():
    """Make sure the kind match is case sensitive and not a prefix match"""
    dm = DryRunDeployManager()
    dm.register_api_kind("dbaas.redhat.com/v1beta1", "DBaaSProviderList")
    dm.register_api_kind("dbaas.redhat.com/v1beta1", "dbaasprovider")
    assert not is_kind_available(dm, "dbaas.redhat.com/v1beta1", "DBaaSProvider")


def test_kind_available_not_cached():
    """Make sure a kind registered after a negative answer is seen right away"""
    dm = DryRunDeployManager()
    assert not is_kind_available(dm, "dbaas.redhat.com/v1beta1", "DBaaSProvider")
    dm.register_api_kind("dbaas.redhat.com/v1beta1", "DBaaSProvider")
    assert is_kind_available(dm, "dbaas.redhat.com/v1beta1", "DBaaSProvider")


def test_discovery_fault_propagates():
    """Make sure a discovery failure other than not-served is raised"""
    dm = mock.Mock()
    dm.get_served_kinds.side_effect = RuntimeError("connection refused")
    with pytest.raises(RuntimeError):
        is_kind_available(dm, "dbaas.redhat.com/v1beta1", "DBaaSProvider")


def test_timeout_passed_through():
    """Make sure the timeout reaches the discovery call"""
    dm = mock.Mock()
    dm.get_served_kinds.return_value = ["DBaaSProvider"]
    assert is_kind_available(dm, "dbaas.redhat.com/v1beta1", "DBaaSProvider", 2.5)
    dm.get_served_kinds.assert_called_once_with(
        "dbaas.redhat.com/v1beta1", timeout=2.5
    )
