"""
Tests for the WatchThread
"""
# Standard
from queue import Empty
from unittest import mock

# Third Party
import pytest
import urllib3

# Local
from dbaasreg import constants
from dbaasreg.deploy_manager import (
    DryRunDeployManager,
    KubeEventType,
    KubeWatchEvent,
    OpenshiftDeployManager,
)
from dbaasreg.managed_object import ManagedObject
from dbaasreg.test_helpers.dispatch_helpers import MockedReconcileThread
from dbaasreg.test_helpers.helpers import (
    OTHER_OPERATOR_NAME,
    SOME_OTHER_NAMESPACE,
    TEST_NAMESPACE,
    ScriptedWatch,
    library_config,
    package_labels,
    setup_deployment,
    setup_operator_config,
    setup_raw_event,
    wait_for,
)
from dbaasreg.watch_manager.filters import get_admission_filter
from dbaasreg.watch_manager.threads import WatchThread

## Helpers #####################################################################


def make_watch_thread(reconcile_thread, deploy_manager, **kwargs):
    return WatchThread(
        reconcile_thread=reconcile_thread,
        kind=constants.WORKLOAD_KIND,
        api_version=constants.WORKLOAD_API_VERSION,
        admission_filter=get_admission_filter(setup_operator_config()),
        namespace=TEST_NAMESPACE,
        deploy_manager=deploy_manager,
        **kwargs,
    )


class FailingDeployManager(DryRunDeployManager):
    """Deploy manager whose watch can never be opened"""

    def __init__(self):
        super().__init__()
        self.watch_attempts = 0

    def watch_objects(self, *_, **__):
        self.watch_attempts += 1
        raise RuntimeError("Watch refused")


class RelistingDeployManager(DryRunDeployManager):
    """Deploy manager whose watch replays the same Deployment as ADDED and
    then breaks, every time it is opened
    """

    def __init__(self, deployment):
        super().__init__()
        self.deployment = deployment
        self.watch_attempts = 0

    def watch_objects(self, *_, **__):
        self.watch_attempts += 1
        yield KubeWatchEvent(KubeEventType.ADDED, ManagedObject(self.deployment))
        raise RuntimeError("Stream broke")


@pytest.mark.timeout(10)
def test_watch_thread_admits_own_workload():
    """Make sure the operator's own Deployment is pushed as an ADDED request"""
    dm = DryRunDeployManager()
    reconcile_thread = MockedReconcileThread()
    watch_thread = make_watch_thread(reconcile_thread, dm)
    watch_thread.start_thread()
    try:
        deployment = setup_deployment()
        dm.deploy([deployment])
        request = reconcile_thread.get_request()
        assert request.type == KubeEventType.ADDED
        assert request.resource.name == deployment["metadata"]["name"]
    finally:
        watch_thread.stop_thread()


@pytest.mark.timeout(10)
def test_watch_thread_existing_workload():
    """Make sure a Deployment that exists before the watch starts is admitted"""
    dm = DryRunDeployManager(resources=[setup_deployment()])
    reconcile_thread = MockedReconcileThread()
    watch_thread = make_watch_thread(reconcile_thread, dm)
    watch_thread.start_thread()
    try:
        assert reconcile_thread.get_request().type == KubeEventType.ADDED
    finally:
        watch_thread.stop_thread()


@pytest.mark.timeout(10)
def test_watch_thread_filtered():
    """Make sure updates, deletes and foreign Deployments are not forwarded"""
    dm = DryRunDeployManager()
    reconcile_thread = MockedReconcileThread()
    watch_thread = make_watch_thread(reconcile_thread, dm)
    watch_thread.start_thread()
    try:
        dm.deploy(
            [
                setup_deployment(
                    name="foreign", labels=package_labels(OTHER_OPERATOR_NAME)
                ),
                setup_deployment(name="unlabeled", labels={}),
                setup_deployment(name="elsewhere", namespace=SOME_OTHER_NAMESPACE),
            ]
        )
        deployment = setup_deployment()
        dm.deploy([deployment])
        request = reconcile_thread.get_request()
        assert request.resource.name == deployment["metadata"]["name"]

        deployment["spec"]["replicas"] = 2
        dm.deploy([deployment])
        dm.delete_object(
            kind=constants.WORKLOAD_KIND,
            name=deployment["metadata"]["name"],
            namespace=TEST_NAMESPACE,
        )
        with pytest.raises(Empty):
            reconcile_thread.get_request(timeout=0.5)
    finally:
        watch_thread.stop_thread()


@pytest.mark.timeout(10)
def test_watch_thread_gives_up():
    """Make sure a watch that keeps failing reports the failure once"""
    dm = FailingDeployManager()
    on_failure = mock.Mock()
    with library_config(watch_retry_count=2, watch_retry_delay="0.01s"):
        watch_thread = make_watch_thread(
            MockedReconcileThread(), dm, on_failure=on_failure
        )
    watch_thread.start_thread()
    watch_thread.join(5)

    assert not watch_thread.is_alive()
    assert dm.watch_attempts == 3
    on_failure.assert_called_once()


@pytest.mark.timeout(10)
def test_watch_thread_stop_during_retry():
    """Make sure stopping the thread ends the retry wait without a failure"""
    dm = FailingDeployManager()
    on_failure = mock.Mock()
    with library_config(watch_retry_count=5, watch_retry_delay="1m"):
        watch_thread = make_watch_thread(
            MockedReconcileThread(), dm, on_failure=on_failure
        )
    watch_thread.start_thread()
    assert wait_for(lambda: dm.watch_attempts == 1)

    watch_thread.stop_thread()
    watch_thread.join(5)
    assert not watch_thread.is_alive()
    on_failure.assert_not_called()


@pytest.mark.timeout(10)
def test_watch_thread_relist_not_readmitted():
    """Make sure a Deployment replayed as ADDED after the watch restarts is
    only admitted the first time
    """
    dm = RelistingDeployManager(setup_deployment())
    reconcile_thread = MockedReconcileThread()
    on_failure = mock.Mock()
    with library_config(watch_retry_count=3, watch_retry_delay="0.01s"):
        watch_thread = make_watch_thread(reconcile_thread, dm, on_failure=on_failure)
    watch_thread.start_thread()
    watch_thread.join(5)

    assert dm.watch_attempts == 4
    on_failure.assert_called_once()
    assert reconcile_thread.get_request().type == KubeEventType.ADDED
    with pytest.raises(Empty):
        reconcile_thread.get_request(timeout=0.2)


@pytest.mark.timeout(10)
def test_watch_thread_readmits_after_delete():
    """Make sure a deleted object is forgotten so a new creation with the same
    uid is admitted again
    """
    deployment = setup_deployment()
    watch_thread = make_watch_thread(MockedReconcileThread(), DryRunDeployManager())
    reconcile_thread = watch_thread.reconcile_thread
    resource = ManagedObject(deployment)

    watch_thread._handle_event(KubeWatchEvent(KubeEventType.ADDED, resource))
    watch_thread._handle_event(KubeWatchEvent(KubeEventType.ADDED, resource))
    watch_thread._handle_event(KubeWatchEvent(KubeEventType.DELETED, resource))
    watch_thread._handle_event(KubeWatchEvent(KubeEventType.ADDED, resource))

    assert reconcile_thread.requests.qsize() == 2
    assert resource.uid in watch_thread.watched_resources


@pytest.mark.timeout(10)
def test_watch_thread_socket_timeouts_admit_once():
    """Make sure a live watch that keeps timing out and replaying the existing
    Deployment admits it once and resumes from the last resourceVersion
    """
    deployment = setup_deployment()
    timeout = urllib3.exceptions.ReadTimeoutError(None, "/apis/apps/v1", "idle")
    kube_watch = ScriptedWatch(
        *[([setup_raw_event("ADDED", deployment, "5")], timeout)] * 3
    )
    reconcile_thread = MockedReconcileThread()
    on_failure = mock.Mock()
    with library_config(watch_retry_count=0, watch_retry_delay="0.01s"):
        watch_thread = make_watch_thread(
            reconcile_thread,
            OpenshiftDeployManager(dynamic_client=mock.MagicMock()),
            on_failure=on_failure,
        )
    watch_thread.kubernetes_watch = kube_watch
    watch_thread.start_thread()
    watch_thread.join(5)

    assert kube_watch.requested_versions[:3] == [0, "5", "5"]
    assert reconcile_thread.get_request().resource.uid == deployment["metadata"]["uid"]
    with pytest.raises(Empty):
        reconcile_thread.get_request(timeout=0.2)
