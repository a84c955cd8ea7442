"""Template for tasks that create and own their remote object."""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Any, Dict, Optional

from ..client import RemoteObject
from ..config import InfraSpec, InfraState, Reference
from ..errors import ConsistencyError, DependencyError, NotFoundError
from .base import Action, Task, attributes_differ

if TYPE_CHECKING:  # pragma: no cover
    from ..ensurer import EnsurerContext


class ManagedTask(Task):
    """Verify-or-create an owned object.

    Subclasses describe the object (:attr:`kind`, :meth:`desired_attributes`)
    and bind the API family (:meth:`_get`, :meth:`_create`, :meth:`_update`,
    :meth:`_delete`).  The idempotence protocol lives here:

    * no reference: create, tag and record the new reference;
    * reference resolves: update if name, tags or attributes drifted;
    * reference is stale: drop it and raise :class:`ConsistencyError`.
    """

    kind: str = ""

    def name_to_log(self, spec: InfraSpec) -> Optional[str]:
        return spec.full_cluster_name

    def desired_attributes(self, spec: InfraSpec, state: InfraState) -> Dict[str, Any]:
        return {}

    def ensure(self, ctx: "EnsurerContext", spec: InfraSpec, state: InfraState) -> Action:
        name = self.name_to_log(spec) or spec.full_cluster_name
        attributes = self.desired_attributes(spec, state)
        tags = self.desired_tags(spec)

        ref = self.reference(state)
        if ref is None:
            obj = self._create(ctx, state, name, tags, attributes)
            state.set_reference(self.slot, obj.reference())
            return Action.CREATED

        try:
            current = self._get(ctx, ref.id)
        except NotFoundError as exc:
            state.set_reference(self.slot, None)
            raise ConsistencyError(
                f"{self.kind} {ref.id} no longer exists, reference dropped"
            ) from exc

        if (
            current.display_name == name
            and current.has_tags(tags)
            and not attributes_differ(current.attributes, attributes)
        ):
            return Action.UNCHANGED

        updated = self._update(ctx, ref.id, name, tags, attributes)
        state.set_reference(self.slot, updated.reference())
        return Action.UPDATED

    def ensure_deleted(self, ctx: "EnsurerContext", state: InfraState) -> bool:
        ref = self.reference(state)
        if ref is None:
            return False
        try:
            self._delete(ctx, ref.id)
        except NotFoundError:
            ctx.logger.debug("%s %s already gone", self.label, ref.id)
        state.set_reference(self.slot, None)
        return True

    @abstractmethod
    def desired_tags(self, spec: InfraSpec) -> Dict[str, str]:
        """Tags stamped on every created object."""

    @abstractmethod
    def _get(self, ctx: "EnsurerContext", object_id: str) -> RemoteObject:
        """Fetch the object; raise :class:`NotFoundError` when it is gone."""

    @abstractmethod
    def _create(
        self,
        ctx: "EnsurerContext",
        state: InfraState,
        name: str,
        tags: Dict[str, str],
        attributes: Dict[str, Any],
    ) -> RemoteObject:
        """Create the object under its parent."""

    @abstractmethod
    def _update(
        self,
        ctx: "EnsurerContext",
        object_id: str,
        name: str,
        tags: Dict[str, str],
        attributes: Dict[str, Any],
    ) -> RemoteObject:
        """Replace name, tags and attributes."""

    @abstractmethod
    def _delete(self, ctx: "EnsurerContext", object_id: str) -> None:
        """Delete the object."""


def require(state: InfraState, slot: str) -> Reference:
    """Return the reference in ``slot`` or fail because an earlier task did not run."""

    ref = state.get_reference(slot)
    if ref is None:
        raise DependencyError(f"{slot.replace('_', ' ')} missing")
    return ref
