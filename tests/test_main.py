"""
Tests for the __main__.py entrypoint to the library as an executable
"""

# Standard
from unittest import mock
import argparse
import os

# Third Party
import pytest
import yaml

# First Party
import aconfig

# Local
from dbaasreg import constants
from dbaasreg.__main__ import add_library_config_args, main, update_library_config
from dbaasreg.config import library_config as config_detail_dict
from dbaasreg.test_helpers.helpers import (
    TEST_NAMESPACE,
    TEST_OPERATOR_NAME,
    TEST_SPEC,
    get_provider,
    library_config,
    wait_for,
    write_definition,
)
from dbaasreg.watch_manager import WatchManager

## Helpers #####################################################################

OPERATOR_ENV = {
    constants.INSTALL_NAMESPACE_ENV_VAR: TEST_NAMESPACE,
    constants.OPERATOR_NAME_ENV_VAR: TEST_OPERATOR_NAME,
}


class StopWhenRegistered(WatchManager):
    """WatchManager that returns from wait as soon as the registration exists"""

    providers = []

    def wait(self, timeout=None):
        registered = wait_for(lambda: get_provider(self.deploy_manager), timeout=5)
        self.providers.append(get_provider(self.deploy_manager))
        return registered


class StopWhenRequeued(WatchManager):
    """WatchManager that returns from wait once the first requeue is scheduled"""

    providers = []

    def wait(self, timeout=None):
        requeued = wait_for(lambda: self.reconcile_thread.event_map, timeout=5)
        self.providers.append(get_provider(self.deploy_manager))
        return bool(requeued)


@pytest.fixture
def resource_dir(tmp_path, deployment, cluster_role):
    """A directory holding the operator's Deployment and ClusterRole"""
    directory = tmp_path / "resources"
    directory.mkdir()
    with open(directory / "resources.yaml", "w", encoding="utf-8") as handle:
        yaml.safe_dump_all([deployment, cluster_role], handle)
    return str(directory)


@pytest.fixture
def clean_library_config():
    """Revert the library config values the entrypoint may overwrite"""
    with library_config(
        dry_run=config_detail_dict.dry_run,
        definition_dir=config_detail_dict.definition_dir,
        log_level=config_detail_dict.log_level,
    ):
        yield


@pytest.fixture
def no_signal_handlers():
    with mock.patch("dbaasreg.cmd.run_operator_cmd.signal.signal"):
        yield


## add_library_config_args #####################################################


def test_add_library_config_args_nested():
    """Make sure nested config values get dotted flags of the right type"""
    config_obj = aconfig.Config(
        {"top": 1, "flag": False, "nested": {"key": "value"}, "unset": None},
        override_env_vars=False,
    )
    parser = argparse.ArgumentParser()
    setters = add_library_config_args(parser, config_obj=config_obj)
    assert setters == {
        "top": ["top"],
        "flag": ["flag"],
        "nested_key": ["nested", "key"],
        "unset": ["unset"],
    }

    args = parser.parse_args(["--top", "5", "--flag", "--nested.key", "other"])
    assert args.top == 5
    assert args.flag is True
    assert args.nested_key == "other"
    assert args.unset is None


def test_update_library_config():
    """Make sure parsed args are written back into the library config"""
    with library_config(type_gate={"min_delay": "30s", "max_delay": "30m"}):
        setters = {"type_gate_min_delay": ["type_gate", "min_delay"]}
        update_library_config(
            argparse.Namespace(type_gate_min_delay="1s"), setters
        )
        assert config_detail_dict.type_gate.min_delay == "1s"


def test_library_config_args_cover_shipped_config():
    parser = argparse.ArgumentParser()
    setters = add_library_config_args(parser)
    assert "type_gate_max_delay" in setters
    assert "watch_retry_count" in setters
    assert "dry_run" in setters


## main ########################################################################


@pytest.mark.usefixtures("clean_library_config", "no_signal_handlers")
def test_main_missing_environment():
    """Make sure a missing environment value exits with an error code"""
    with mock.patch.dict(os.environ, {}, clear=True):
        assert main(["run", "--dry_run", "--log_level", "off"]) == 1


@pytest.mark.timeout(10)
@pytest.mark.usefixtures("clean_library_config", "no_signal_handlers")
def test_main_dry_run(tmp_path, resource_dir):
    """Make sure a dry run registers the provider from the given definition"""
    definition_dir = tmp_path / "definition"
    definition_dir.mkdir()
    write_definition(definition_dir)
    StopWhenRegistered.providers = []

    with mock.patch.dict(os.environ, OPERATOR_ENV), mock.patch(
        "dbaasreg.cmd.run_operator_cmd.WatchManager", StopWhenRegistered
    ):
        exit_code = main(
            [
                "--dry_run",
                "--log_level",
                "off",
                "--definition_dir",
                str(definition_dir),
                "-r",
                resource_dir,
            ]
        )

    assert exit_code == 0
    provider = StopWhenRegistered.providers[0]
    assert provider["spec"] == TEST_SPEC
    assert provider["metadata"]["labels"] == constants.PROVIDER_LABELS


@pytest.mark.timeout(10)
@pytest.mark.usefixtures("clean_library_config", "no_signal_handlers")
def test_main_dry_run_withheld_type(tmp_path, resource_dir):
    """Make sure nothing is registered while the provider type is not served"""
    definition_dir = tmp_path / "definition"
    definition_dir.mkdir()
    write_definition(definition_dir)

    StopWhenRequeued.providers = []
    with mock.patch.dict(os.environ, OPERATOR_ENV), mock.patch(
        "dbaasreg.cmd.run_operator_cmd.WatchManager", StopWhenRequeued
    ):
        exit_code = main(
            [
                "run",
                "--dry_run",
                "--log_level",
                "off",
                "--definition_dir",
                str(definition_dir),
                "-r",
                resource_dir,
                "--withhold_provider_type",
            ]
        )
    assert exit_code == 0
    assert StopWhenRequeued.providers == [None]


def test_main_resource_dir_requires_dry_run(tmp_path, clean_library_config):
    with mock.patch.dict(os.environ, OPERATOR_ENV):
        with pytest.raises(AssertionError):
            main(["run", "--log_level", "off", "-r", str(tmp_path)])
