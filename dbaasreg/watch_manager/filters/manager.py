"""Combines filters into and/or groups and evaluates them"""
# Standard
from typing import List, Optional, Tuple, Type, Union
import inspect

# First Party
import alog

# Local
from ...deploy_manager import KubeEventType
from ...managed_object import ManagedObject
from ...operator_config import OperatorConfig
from .filters import Filter

log = alog.use_channel("WMFLTMAN")

# A filter class, a list of groups (all must pass) or a tuple of groups (any
# may pass)
FILTER_GROUP = Union[Type[Filter], List["FILTER_GROUP"], Tuple["FILTER_GROUP", ...]]


def AndFilter(*filters):  # pylint: disable=invalid-name
    """Group that passes when every member passes"""
    return list(filters)


def OrFilter(*filters):  # pylint: disable=invalid-name
    """Group that passes when any member passes"""
    return tuple(filters)


class FilterManager(Filter):
    """A Filter built from a tree of filter classes. Lists are and-groups and
    plain tuples are or-groups. Members that return None abstain. A group
    where every member abstains rejects, and an empty group passes.
    Evaluation stops at the first member that decides the group.
    """

    def __init__(self, filters: FILTER_GROUP, operator_config: OperatorConfig):
        super().__init__(operator_config)
        self.filters = self._instantiate(filters, operator_config)

    def test(self, resource: ManagedObject, event: KubeEventType) -> Optional[bool]:
        result = self._evaluate(self.filters, resource, event)
        log.debug2(
            "Filter result for %s on %s: %s",
            resource,
            event,
            result,
            extra={"resource": resource.definition},
        )
        return result

    ## Implementation Details ##################################################

    @classmethod
    def _instantiate(cls, filters, operator_config: OperatorConfig):
        """Build the filter instances, keeping the list/tuple shape"""
        # NamedTuples and other tuple subclasses are not groups
        if isinstance(filters, list) or type(filters) is tuple:
            return type(filters)(
                cls._instantiate(member, operator_config) for member in filters
            )
        if not (inspect.isclass(filters) and issubclass(filters, Filter)):
            raise ValueError(f"Expected a Filter class, got {type(filters)}")
        return filters(operator_config)

    @classmethod
    def _evaluate(
        cls, filters, resource: ManagedObject, event: KubeEventType
    ) -> Optional[bool]:
        if isinstance(filters, Filter):
            return filters.test(resource, event)
        if not filters:
            return True

        # An and-group is decided by the first failure, an or-group by the
        # first pass
        is_and = isinstance(filters, list)
        decided = None
        for member in filters:
            result = cls._evaluate(member, resource, event)
            if result is None:
                continue
            decided = result
            if result != is_and:
                log.debug3(
                    "Group decided by %s",
                    member,
                    extra={"resource": resource.definition},
                )
                break
        return bool(decided)
