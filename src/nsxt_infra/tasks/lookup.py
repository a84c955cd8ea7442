"""Lookup tasks for objects that exist independently of the ensurer."""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional

from .. import client as kinds
from ..client import RemoteObject
from ..config import InfraSpec, InfraState
from ..errors import LookupFailedError, NotFoundError
from .base import Action, Task

if TYPE_CHECKING:  # pragma: no cover
    from ..ensurer import EnsurerContext


class LookupTask(Task):
    """Resolve a pre-existing object and record its reference.

    A stored reference is verified; if the object vanished the reference is
    resolved again from scratch.  Deleting only forgets the reference.
    """

    lookup = True
    kind: str = ""

    def ensure(self, ctx: "EnsurerContext", spec: InfraSpec, state: InfraState) -> Action:
        ref = self.reference(state)
        if ref is not None:
            try:
                self._get(ctx, ref.id)
                return Action.UNCHANGED
            except NotFoundError:
                ctx.logger.info("%s: stored id %s vanished, resolving again", self.label, ref.id)
                state.set_reference(self.slot, None)

        matches = [
            obj for obj in self._candidates(ctx, spec, state) if self._matches(obj, spec, state)
        ]
        if not matches:
            raise LookupFailedError(f"{self.kind} {self._describe(spec)} not found")
        if len(matches) > 1:
            raise LookupFailedError(
                f"{self.kind} {self._describe(spec)} is ambiguous ({len(matches)} matches)"
            )
        state.set_reference(self.slot, matches[0].reference())
        return Action.FOUND

    def ensure_deleted(self, ctx: "EnsurerContext", state: InfraState) -> bool:
        state.set_reference(self.slot, None)
        return False

    def _get(self, ctx: "EnsurerContext", object_id: str) -> RemoteObject:
        return ctx.policy.get(self.kind, object_id)

    def _candidates(
        self, ctx: "EnsurerContext", spec: InfraSpec, state: InfraState
    ) -> List[RemoteObject]:
        return ctx.policy.list(self.kind)

    def _matches(self, obj: RemoteObject, spec: InfraSpec, state: InfraState) -> bool:
        return obj.display_name == self.name_to_log(spec)

    def _describe(self, spec: InfraSpec) -> str:
        return repr(self.name_to_log(spec))


class LookupTier0GatewayTask(LookupTask):
    slot = "tier0_gateway_ref"
    label = "tier-0 gateway lookup"
    kind = kinds.TIER0

    def name_to_log(self, spec: InfraSpec) -> Optional[str]:
        return spec.tier0_gateway_name


class LookupTransportZoneTask(LookupTask):
    slot = "transport_zone_ref"
    label = "transport zone lookup"
    kind = kinds.TRANSPORT_ZONE

    def name_to_log(self, spec: InfraSpec) -> Optional[str]:
        return spec.transport_zone_name


class LookupEdgeClusterTask(LookupTask):
    slot = "edge_cluster_ref"
    label = "edge cluster lookup"
    kind = kinds.EDGE_CLUSTER

    def name_to_log(self, spec: InfraSpec) -> Optional[str]:
        return spec.edge_cluster_name


class LookupSNATIPPoolTask(LookupTask):
    slot = "snat_ip_pool_ref"
    label = "SNAT IP pool lookup"
    kind = kinds.IP_POOL

    def name_to_log(self, spec: InfraSpec) -> Optional[str]:
        return spec.snat_ip_pool_name


class AdvancedLookupLogicalSwitchTask(LookupTask):
    """Find the Manager logical switch realized for the Policy segment."""

    slot = "logical_switch_ref"
    label = "advanced logical switch lookup"
    kind = kinds.LOGICAL_SWITCH

    def _get(self, ctx: "EnsurerContext", object_id: str) -> RemoteObject:
        return ctx.manager.get(self.kind, object_id)

    def _candidates(
        self, ctx: "EnsurerContext", spec: InfraSpec, state: InfraState
    ) -> List[RemoteObject]:
        if state.segment_ref is None:
            raise LookupFailedError("segment reference missing")
        return ctx.manager.list(self.kind)

    def _matches(self, obj: RemoteObject, spec: InfraSpec, state: InfraState) -> bool:
        segment = state.segment_ref
        return segment is not None and obj.attributes.get("segment_path") == segment.path

    def _describe(self, spec: InfraSpec) -> str:
        return f"for segment {spec.full_cluster_name!r}"
