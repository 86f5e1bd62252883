"""
Tests for the FilterManager
"""
# Third Party
import pytest

# Local
from dbaasreg.deploy_manager import KubeEventType
from dbaasreg.managed_object import ManagedObject
from dbaasreg.test_helpers.helpers import setup_deployment, setup_operator_config
from dbaasreg.watch_manager.filters import AndFilter, Filter, FilterManager, OrFilter

## Helpers #####################################################################


class PassFilter(Filter):
    def test(self, resource, event):
        return True


class FailFilter(Filter):
    def test(self, resource, event):
        return False


class NoneFilter(Filter):
    def test(self, resource, event):
        return None


class ExplodingFilter(Filter):
    def test(self, resource, event):
        raise AssertionError("Short circuit should have skipped this filter")


def run_filters(filters):
    manager = FilterManager(filters, setup_operator_config())
    return manager.test(ManagedObject(setup_deployment()), KubeEventType.ADDED)


## Tests #######################################################################


def test_single_filter():
    assert run_filters(PassFilter)
    assert not run_filters(FailFilter)


def test_and_filter():
    assert run_filters(AndFilter(PassFilter, PassFilter))
    assert not run_filters(AndFilter(PassFilter, FailFilter))


def test_or_filter():
    assert run_filters(OrFilter(FailFilter, PassFilter))
    assert not run_filters(OrFilter(FailFilter, FailFilter))


def test_nested_filters():
    assert run_filters(AndFilter(PassFilter, OrFilter(FailFilter, PassFilter)))
    assert not run_filters(OrFilter(FailFilter, AndFilter(PassFilter, FailFilter)))


def test_none_results_are_skipped():
    assert run_filters(AndFilter(NoneFilter, PassFilter))
    assert not run_filters(AndFilter(NoneFilter, NoneFilter))


def test_short_circuit():
    """Make sure filters after a decisive result are not run"""
    assert not run_filters(AndFilter(FailFilter, ExplodingFilter))
    assert run_filters(OrFilter(PassFilter, ExplodingFilter))


def test_unknown_filter_type():
    with pytest.raises(ValueError):
        FilterManager(AndFilter(PassFilter, "not a filter"), setup_operator_config())
