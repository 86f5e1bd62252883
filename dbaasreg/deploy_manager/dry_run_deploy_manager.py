"""
An in-memory DeployManager. Objects are held in a local store instead of a
cluster, which lets the operator run end to end in tests and dry runs.
"""

# Standard
from datetime import datetime
from queue import Empty, Queue
from threading import RLock
from typing import Callable, Dict, Iterator, List, Optional, Set, Tuple
import copy
import re
import uuid

# First Party
import alog

# Local
from ..managed_object import ManagedObject
from .base import DeployManagerBase, OperationResult
from .kube_event import KubeEventType, KubeWatchEvent

log = alog.use_channel("DRY-RUN")

# Seconds between checks for a stopped watch
WATCH_POLL_SECONDS = 1

# (apiVersion, kind, namespace, name) where a None entry matches anything
WATCH_KEY = Tuple[Optional[str], Optional[str], Optional[str], Optional[str]]
WATCH_CALLBACK = Callable[[KubeWatchEvent], None]

# (namespace, kind, apiVersion, name)
STORE_KEY = Tuple[Optional[str], str, str, str]


class DryRunDeployManager(DeployManagerBase):
    """DeployManager over an in-memory object store"""

    def __init__(self, resources: Optional[List[dict]] = None):
        """
        Args:
            resources:  Optional[List[dict]]
                Objects that already exist. Their kinds count as served.
        """
        self._objects: Dict[STORE_KEY, dict] = {}
        self._served_kinds: Dict[str, Set[str]] = {}
        self._watches: List[Tuple[WATCH_KEY, WATCH_CALLBACK]] = []
        self._resource_version = 0
        self._lock = RLock()

        for resource in resources or []:
            self._store(copy.deepcopy(resource), notify=False)

    ## Interface ###############################################################

    def get_object_current_state(
        self,
        kind,
        name,
        namespace=None,
        api_version=None,
        timeout=None,
    ):
        log.info("DRY RUN get [%s/%s] in [%s]", kind, name, namespace)
        with self._lock:
            matches = [
                obj
                for (obj_ns, obj_kind, obj_api, obj_name), obj in self._objects.items()
                if (obj_ns, obj_kind, obj_name) == (namespace, kind, name)
                and api_version in (None, obj_api)
            ]
            log.debug2("%d match(es) for [%s/%s]", len(matches), kind, name)
            if len(matches) != 1:
                return True, None
            return True, copy.deepcopy(matches[0])

    def filter_objects_current_state(
        self,
        kind,
        namespace=None,
        api_version=None,
        label_selector=None,
        field_selector=None,
        timeout=None,
    ):  # pylint: disable=too-many-arguments
        log.info("DRY RUN filter [%s] in [%s]", kind, namespace)
        matches = []
        with self._lock:
            for (obj_ns, obj_kind, obj_api, _), obj in self._objects.items():
                if (obj_ns, obj_kind) != (namespace, kind):
                    continue
                if api_version not in (None, obj_api):
                    continue
                labels = obj.get("metadata", {}).get("labels") or {}
                if label_selector and not selector_matches(labels, label_selector):
                    continue
                if field_selector and not selector_matches(
                    _flatten(obj), field_selector
                ):
                    continue
                matches.append(copy.deepcopy(obj))
        return True, matches

    def get_served_kinds(self, group_version, timeout=None):
        log.info("DRY RUN served kinds of [%s]", group_version)
        with self._lock:
            kinds = self._served_kinds.get(group_version)
            return None if kinds is None else sorted(kinds)

    def create_or_update(
        self,
        kind,
        api_version,
        name,
        mutate,
        namespace=None,
        timeout=None,
        cancel_event=None,
    ):  # pylint: disable=too-many-arguments,unused-argument
        log.info(
            "DRY RUN create_or_update [%s/%s/%s] in [%s]",
            api_version,
            kind,
            name,
            namespace,
        )
        with self._lock:
            _, current = self.get_object_current_state(
                kind=kind, name=name, namespace=namespace, api_version=api_version
            )
            desired = self._build_desired(
                current, kind, api_version, name, namespace, mutate
            )
            if current is not None and not self._manifest_diff(current, desired):
                log.debug2("No change for [%s/%s/%s]", api_version, kind, name)
                return OperationResult.UNCHANGED
            self._store(desired)
        return OperationResult.CREATED if current is None else OperationResult.UPDATED

    def watch_objects(  # pylint: disable=too-many-arguments,unused-argument
        self,
        kind: str,
        api_version: Optional[str] = None,
        namespace: Optional[str] = None,
        name: Optional[str] = None,
        label_selector: Optional[str] = None,
        field_selector: Optional[str] = None,
        resource_version: Optional[str] = None,
        watch_manager=None,
    ) -> Iterator[KubeWatchEvent]:
        """Replay matching objects as ADDED events, then stream every later
        change until the given watch_manager is stopped
        """
        pending = Queue()
        with self._lock:
            _, existing = self.filter_objects_current_state(
                kind=kind,
                api_version=api_version,
                namespace=namespace,
                label_selector=label_selector,
                field_selector=field_selector,
            )
            self.register_watch(api_version, kind, pending.put, namespace, name)

        for manifest in existing:
            if name is None or manifest["metadata"].get("name") == name:
                yield KubeWatchEvent(KubeEventType.ADDED, ManagedObject(manifest))

        while not getattr(watch_manager, "_stop", False):
            try:
                event = pending.get(timeout=WATCH_POLL_SECONDS)
            except Empty:
                continue
            log.debug2("Yielding event %s", event)
            yield event
        log.debug("Watch of %s/%s stopped", api_version, kind)

    ## Dry Run Methods #########################################################

    def register_api_kind(self, api_version: str, kind: str):
        """Serve a kind that has no objects yet"""
        log.debug("Registering served kind %s/%s", api_version, kind)
        with self._lock:
            self._served_kinds.setdefault(api_version, set()).add(kind)

    def deploy(self, resource_definitions: List[dict]) -> Tuple[bool, bool]:
        """Store the given objects verbatim. Returns success and whether any of
        them changed.
        """
        changed = [self._store(copy.deepcopy(obj)) for obj in resource_definitions]
        return True, any(changed)

    def delete_object(
        self,
        kind: str,
        name: str,
        namespace: Optional[str] = None,
        api_version: Optional[str] = None,
    ) -> bool:
        with self._lock:
            _, content = self.get_object_current_state(
                kind=kind, name=name, namespace=namespace, api_version=api_version
            )
            if content is None:
                return False
            del self._objects[(namespace, kind, content["apiVersion"], name)]
        self._notify(KubeEventType.DELETED, content)
        return True

    def register_watch(  # pylint: disable=too-many-arguments
        self,
        api_version: Optional[str],
        kind: Optional[str],
        callback: WATCH_CALLBACK,
        namespace: Optional[str] = None,
        name: Optional[str] = None,
    ):
        """Call back with every event on objects matching the given fields.
        Fields left as None match any value.
        """
        watch_key = (api_version, kind, namespace, name)
        log.debug("Registering watch for %s", watch_key)
        with self._lock:
            self._watches.append((watch_key, callback))

    ## Implementation Details ##################################################

    def _store(self, resource: dict, notify: bool = True) -> bool:
        """Write one object, stamping the server managed metadata. Returns
        whether the content changed.
        """
        api_version = resource.get("apiVersion")
        kind = resource.get("kind")
        metadata = resource.setdefault("metadata", {})
        key = (metadata.get("namespace"), kind, api_version, metadata.get("name"))
        log.debug("DRY RUN store %s", key)
        log.debug4(resource)

        with self._lock:
            current = self._objects.get(key)
            changed = current is None or self._manifest_diff(current, resource)

            previous = (current or {}).get("metadata", {})
            metadata["uid"] = (
                previous.get("uid") or metadata.get("uid") or str(uuid.uuid4())
            )
            metadata["creationTimestamp"] = previous.get(
                "creationTimestamp", datetime.now().isoformat()
            )
            self._resource_version += 1
            metadata["resourceVersion"] = str(self._resource_version)

            self._objects[key] = resource
            self._served_kinds.setdefault(api_version, set()).add(kind)

        if notify:
            self._notify(
                KubeEventType.ADDED if current is None else KubeEventType.MODIFIED,
                resource,
            )
        return changed

    def _notify(self, event_type: KubeEventType, resource: dict):
        metadata = resource.get("metadata", {})
        object_key = (
            resource.get("apiVersion"),
            resource.get("kind"),
            metadata.get("namespace"),
            metadata.get("name"),
        )
        with self._lock:
            callbacks = [
                callback
                for watch_key, callback in self._watches
                if all(
                    wanted is None or wanted == actual
                    for wanted, actual in zip(watch_key, object_key)
                )
            ]
        for callback in callbacks:
            log.debug2("Sending %s of %s to %s", event_type, object_key, callback)
            callback(
                KubeWatchEvent(event_type, ManagedObject(copy.deepcopy(resource)))
            )


## Selectors ###################################################################

# Commas that are not inside a parenthesized value set
_REQUIREMENT_SPLIT = re.compile(r",(?![^(]*\))")
_SET_REQUIREMENT = re.compile(r"^([^\s!=,]+)\s+(in|notin)\s+\((.*)\)$")
_EQUALITY_REQUIREMENT = re.compile(r"^([^\s!=,]+)\s*(==|!=|=)\s*(.*)$")
_EXISTS_REQUIREMENT = re.compile(r"^(!?)\s*([^\s!=,]+)$")


def selector_matches(values: dict, selector: str) -> bool:
    """Check a flat dict of values against a kubernetes label or field
    selector. Supports =, ==, !=, in, notin, existence and !existence.
    https://kubernetes.io/docs/concepts/overview/working-with-objects/labels/
    """
    for requirement in _REQUIREMENT_SPLIT.split(selector):
        requirement = requirement.strip()
        if requirement and not _requirement_matches(values, requirement):
            log.debug3("%s does not satisfy [%s]", values, requirement)
            return False
    return True


def _requirement_matches(values: dict, requirement: str) -> bool:
    match = _SET_REQUIREMENT.match(requirement)
    if match:
        key, operation, options = match.groups()
        value = _as_text(values.get(key))
        in_set = value in [option.strip() for option in options.split(",")]
        return in_set if operation == "in" else not in_set

    match = _EQUALITY_REQUIREMENT.match(requirement)
    if match:
        key, operation, expected = match.groups()
        equal = _as_text(values.get(key)) == expected.strip()
        return not equal if operation == "!=" else equal

    match = _EXISTS_REQUIREMENT.match(requirement)
    assert match, f"Unsupported selector requirement [{requirement}]"
    negated, key = match.groups()
    return (key in values) != bool(negated)


def _as_text(value) -> Optional[str]:
    return None if value is None else str(value).strip()


def _flatten(obj, prefix: str = "") -> dict:
    """Flatten nested dicts to dotted keys, e.g. {a: {b: 1}} -> {a.b: 1}"""
    if not isinstance(obj, dict):
        return {prefix: obj}
    flat = {}
    for key, val in obj.items():
        flat.update(_flatten(val, f"{prefix}.{key}" if prefix else key))
    return flat
