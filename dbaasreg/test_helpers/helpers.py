"""
This module holds common helper functions for making testing easy
"""

# Standard
from contextlib import contextmanager
import copy
import os
import time
import uuid

# Third Party
import yaml

# First Party
import aconfig
import alog

# Local
from dbaasreg import constants
from dbaasreg.config import library_config as config_detail_dict
from dbaasreg.deploy_manager import DryRunDeployManager
from dbaasreg.operator_config import OperatorConfig

log = alog.use_channel("TEST")


def configure_logging():
    alog.configure(
        os.environ.get("LOG_LEVEL", "off"),
        os.environ.get("LOG_FILTERS", ""),
        formatter="json"
        if os.environ.get("LOG_JSON", "").lower() == "true"
        else "pretty",
        thread_id=os.environ.get("LOG_THREAD_ID", "").lower() == "true",
    )


configure_logging()

TEST_NAMESPACE = "test-operators"
SOME_OTHER_NAMESPACE = "somewhere"
TEST_OPERATOR_NAME = "rds-dbaas-operator.v0.1.0"
OTHER_OPERATOR_NAME = "some-other-operator.v1.2.3"
TEST_DEPLOYMENT_NAME = "rds-dbaas-operator-controller-manager"

TEST_SPEC = {
    "provider": {"name": "Test Provider", "displayName": "Test"},
    "inventoryKind": "TestInventory",
    "connectionKind": "TestConnection",
    "instanceKind": "TestInstance",
}


def package_labels(operator_name=TEST_OPERATOR_NAME, owner_kind=None):
    """Labels the package manager puts on everything it installs"""
    return {
        constants.OLM_OWNER_LABEL: operator_name,
        constants.OLM_OWNER_KIND_LABEL: owner_kind or constants.OLM_OWNER_KIND_VALUE,
    }


def setup_deployment(
    name=TEST_DEPLOYMENT_NAME,
    namespace=TEST_NAMESPACE,
    labels=None,
    uid=None,
):
    """Make a Deployment manifest owned by the test operator"""
    return {
        "apiVersion": constants.WORKLOAD_API_VERSION,
        "kind": constants.WORKLOAD_KIND,
        "metadata": {
            "name": name,
            "namespace": namespace,
            "uid": uid or str(uuid.uuid4()),
            "labels": package_labels() if labels is None else labels,
        },
        "spec": {"replicas": 1},
    }


def setup_cluster_role(name, labels=None, uid=None):
    """Make a ClusterRole manifest owned by the test operator"""
    return {
        "apiVersion": constants.OWNER_API_VERSION,
        "kind": constants.OWNER_KIND,
        "metadata": {
            "name": name,
            "uid": uid or str(uuid.uuid4()),
            "labels": package_labels() if labels is None else labels,
        },
        "rules": [],
    }


def setup_provider(spec=None, labels=None, owner_references=None, **kwargs):
    """Make a provider registration manifest"""
    metadata = {"name": constants.PROVIDER_NAME}
    if labels is not None:
        metadata["labels"] = labels
    if owner_references is not None:
        metadata["ownerReferences"] = owner_references
    manifest = {
        "apiVersion": constants.PROVIDER_API_VERSION,
        "kind": constants.PROVIDER_KIND,
        "metadata": metadata,
        "spec": copy.deepcopy(spec if spec is not None else TEST_SPEC),
    }
    manifest.update(kwargs)
    return manifest


def write_definition(directory, spec=None, content=None):
    """Write a definition file into the directory and return its path"""
    path = os.path.join(str(directory), constants.DEFINITION_FILE_NAME)
    if content is None:
        content = yaml.safe_dump(setup_provider(spec=spec))
    with open(path, "w", encoding="utf-8") as handle:
        handle.write(content)
    return path


def setup_operator_config(
    definition_path="/nonexistent/rds_registration.yaml",
    namespace=TEST_NAMESPACE,
    operator_name=TEST_OPERATOR_NAME,
):
    return OperatorConfig(
        install_namespace=namespace,
        operator_name_version=operator_name,
        definition_path=definition_path,
    )


def setup_deploy_manager(resources=None, serve_provider_type=True):
    """Make a DryRunDeployManager holding the given resources and optionally
    serving the provider API type
    """
    deploy_manager = DryRunDeployManager(resources=resources or [])
    if serve_provider_type:
        deploy_manager.register_api_kind(
            constants.PROVIDER_API_VERSION, constants.PROVIDER_KIND
        )
    return deploy_manager


def get_provider(deploy_manager):
    """Fetch the provider registration from the deploy manager"""
    success, provider = deploy_manager.get_object_current_state(
        kind=constants.PROVIDER_KIND,
        name=constants.PROVIDER_NAME,
        api_version=constants.PROVIDER_API_VERSION,
    )
    assert success
    return provider


def wait_for(condition, timeout=5, interval=0.01):
    """Poll the condition until it is true or the timeout passes"""
    deadline = time.time() + timeout
    while time.time() < deadline:
        if condition():
            return True
        time.sleep(interval)
    return condition()


@contextmanager
def library_config(**config_overrides):
    """Temporarily override top level library config keys. Dict values
    replace the whole section.
    """
    saved = {
        key: config_detail_dict[key]
        for key in config_overrides
        if key in config_detail_dict
    }
    for key, val in config_overrides.items():
        if isinstance(val, dict):
            val = aconfig.Config(val, override_env_vars=False)
        config_detail_dict[key] = val
    try:
        yield
    finally:
        for key in config_overrides:
            if key in saved:
                config_detail_dict[key] = saved[key]
            else:
                del config_detail_dict[key]


class ScriptedWatch:
    """Stand-in for a kubernetes Watch. Each call to stream plays the next
    (raw_events, error) pair of the script and tracks resource_version the way
    the real Watch does. The watch stops itself when the last pair is played,
    and streaming past the end of the script raises.
    """

    def __init__(self, *script):
        self.script = list(script)
        self.resource_version = None
        self.requested_versions = []
        self._stop = False

    def stop(self):
        self._stop = True

    def stream(self, func, **kwargs):  # pylint: disable=unused-argument
        self.resource_version = kwargs["resource_version"]
        self.requested_versions.append(self.resource_version)
        if not self.script:
            raise RuntimeError("Watch script exhausted")
        raw_events, error = self.script.pop(0)
        for raw_event in raw_events:
            self.resource_version = raw_event["object"]["metadata"]["resourceVersion"]
            yield raw_event
        if not self.script:
            self._stop = True
        if error is not None:
            raise error


def setup_raw_event(event_type, manifest, resource_version):
    """Make a raw watch event as the kubernetes Watch yields it"""
    manifest = copy.deepcopy(manifest)
    manifest["metadata"]["resourceVersion"] = resource_version
    return {"type": event_type, "object": manifest}
