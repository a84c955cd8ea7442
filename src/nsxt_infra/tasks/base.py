"""Task interfaces and the two recovery strategies.

A task owns one slot of :class:`~nsxt_infra.config.InfraState` and performs
idempotent work against one remote resource type.  Tasks whose resource type
can be searched by tags carry a :class:`RecoveryStrategy`; the orchestrator
asks :attr:`Task.supports_recovery` instead of inspecting task types.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional

from ..client import RemoteObject, tags_to_mapping
from ..config import InfraSpec, InfraState, Reference

if TYPE_CHECKING:  # pragma: no cover
    from ..ensurer import EnsurerContext


class Action(str, Enum):
    """Outcome of :meth:`Task.ensure`."""

    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    FOUND = "found"

    def __str__(self) -> str:
        return self.value


class Task(ABC):
    """Unit of idempotent work against one remote resource type."""

    #: State slot holding the task's reference.
    slot: str = ""
    #: Stable human readable identity used in logs and wrapped errors.
    label: str = ""
    #: Lookup tasks resolve pre-existing objects and never create any.
    lookup: bool = False
    #: Set on tasks whose remote objects can be found again by tags.
    recovery: Optional["RecoveryStrategy"] = None

    @property
    def supports_recovery(self) -> bool:
        return self.recovery is not None

    @abstractmethod
    def ensure(self, ctx: "EnsurerContext", spec: InfraSpec, state: InfraState) -> Action:
        """Make the remote object consistent with ``spec`` and record it in ``state``."""

    @abstractmethod
    def ensure_deleted(self, ctx: "EnsurerContext", state: InfraState) -> bool:
        """Delete the referenced object; return True if something was deleted."""

    def reference(self, state: InfraState) -> Optional[Reference]:
        if not self.slot:
            return None
        return state.get_reference(self.slot)

    def name_to_log(self, spec: InfraSpec) -> Optional[str]:
        return None

    # Recovery hooks, only called through ``recovery``.
    def recovery_candidates(
        self, ctx: "EnsurerContext", state: InfraState, tags: Mapping[str, str]
    ) -> Optional[List[RemoteObject]]:
        """Return tagged objects of this task's kind, None if unsearchable yet."""

        raise NotImplementedError(f"{self.label} does not support recovery")

    def restore_reference(self, state: InfraState, obj: RemoteObject) -> None:
        state.set_reference(self.slot, obj.reference())

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.label}>"


class RecoveryStrategy(ABC):
    """How a task derives the tag set used to find its lost object."""

    name: str = ""

    @abstractmethod
    def tags(self, spec: InfraSpec) -> Dict[str, str]:
        """Return the tag set to search for."""

    def recover(
        self,
        ctx: "EnsurerContext",
        spec: InfraSpec,
        state: InfraState,
        task: Task,
    ) -> bool:
        """Restore ``task``'s reference if exactly one remote object matches.

        Zero or several matches are not an error: the reference stays unset and
        the regular ensure logic decides what to do.  The remote side is never
        mutated.
        """

        tags = self.tags(spec)
        candidates = task.recovery_candidates(ctx, state, tags)
        if candidates is None:
            ctx.logger.debug("%s: recovery skipped, parent not known", task.label)
            return False

        matches = [obj for obj in candidates if obj.has_tags(tags)]
        if len(matches) != 1:
            ctx.logger.info(
                "%s: recovery found %d matching objects, nothing restored",
                task.label,
                len(matches),
            )
            return False

        task.restore_reference(state, matches[0])
        ctx.logger.info("%s recovered id=%s", task.label, matches[0].id)
        return True

    def __repr__(self) -> str:
        return f"<{type(self).__name__}>"


class PolicyTagRecovery(RecoveryStrategy):
    """Recovery for Policy API objects using :meth:`InfraSpec.create_tags`."""

    name = "policy"

    def tags(self, spec: InfraSpec) -> Dict[str, str]:
        return tags_to_mapping(spec.create_tags())


class CommonTagRecovery(RecoveryStrategy):
    """Recovery for Manager API objects using :meth:`InfraSpec.create_common_tags`."""

    name = "common"

    def tags(self, spec: InfraSpec) -> Dict[str, str]:
        return dict(spec.create_common_tags())


def attributes_differ(current: Mapping[str, Any], desired: Mapping[str, Any]) -> bool:
    """Return True when ``current`` lacks or disagrees on any desired attribute."""

    for key, value in desired.items():
        if _plain(current.get(key)) != _plain(value):
            return True
    return False


def _plain(value: Any) -> Any:
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value
