"""Tasks for objects created through the Policy API."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional

from .. import client as kinds
from ..client import RemoteObject, tags_to_mapping
from ..config import InfraSpec, InfraState, Tag
from ..errors import RemoteAPIError
from .base import Action, PolicyTagRecovery, Task
from .managed import ManagedTask, require

if TYPE_CHECKING:  # pragma: no cover
    from ..ensurer import EnsurerContext


class PolicyTask(ManagedTask):
    """Owned Policy API object, recoverable through its tags."""

    recovery = PolicyTagRecovery()
    #: State slot of the parent object whose path nests this one.
    parent_slot: Optional[str] = None

    def desired_tags(self, spec: InfraSpec) -> Dict[str, str]:
        return tags_to_mapping(spec.create_tags())

    def recovery_candidates(
        self, ctx: "EnsurerContext", state: InfraState, tags: Mapping[str, str]
    ) -> Optional[List[RemoteObject]]:
        parent_path = None
        if self.parent_slot:
            parent = state.get_reference(self.parent_slot)
            if parent is None:
                return None
            parent_path = parent.path
        return ctx.policy.list(self.kind, parent_path)

    def _parent_path(self, state: InfraState) -> Optional[str]:
        if not self.parent_slot:
            return None
        return require(state, self.parent_slot).path

    def _get(self, ctx: "EnsurerContext", object_id: str) -> RemoteObject:
        return ctx.policy.get(self.kind, object_id)

    def _create(
        self,
        ctx: "EnsurerContext",
        state: InfraState,
        name: str,
        tags: Dict[str, str],
        attributes: Dict[str, Any],
    ) -> RemoteObject:
        return ctx.policy.create(
            self.kind,
            name,
            parent_path=self._parent_path(state),
            tags=_tag_list(tags),
            attributes=attributes,
        )

    def _update(
        self,
        ctx: "EnsurerContext",
        object_id: str,
        name: str,
        tags: Dict[str, str],
        attributes: Dict[str, Any],
    ) -> RemoteObject:
        return ctx.policy.update(
            self.kind, object_id, name, tags=_tag_list(tags), attributes=attributes
        )

    def _delete(self, ctx: "EnsurerContext", object_id: str) -> None:
        ctx.policy.delete(self.kind, object_id)


def _tag_list(tags: Mapping[str, str]) -> List[Tag]:
    return [Tag(scope=scope, tag=value) for scope, value in tags.items()]


class Tier1GatewayTask(PolicyTask):
    slot = "tier1_gateway_ref"
    label = "tier-1 gateway"
    kind = kinds.TIER1

    def desired_attributes(self, spec: InfraSpec, state: InfraState) -> Dict[str, Any]:
        return {
            "tier0_path": require(state, "tier0_gateway_ref").path,
            "failover_mode": "PREEMPTIVE",
            "route_advertisement_types": ["TIER1_CONNECTED", "TIER1_NAT"],
        }


class Tier1GatewayLocaleServiceTask(PolicyTask):
    slot = "locale_service_ref"
    label = "tier-1 gateway locale service"
    kind = kinds.LOCALE_SERVICES
    parent_slot = "tier1_gateway_ref"

    def desired_attributes(self, spec: InfraSpec, state: InfraState) -> Dict[str, Any]:
        return {"edge_cluster_path": require(state, "edge_cluster_ref").path}


class SegmentTask(PolicyTask):
    slot = "segment_ref"
    label = "segment"
    kind = kinds.SEGMENT

    def desired_attributes(self, spec: InfraSpec, state: InfraState) -> Dict[str, Any]:
        return {
            "connectivity_path": require(state, "tier1_gateway_ref").path,
            "transport_zone_path": require(state, "transport_zone_ref").path,
            "gateway_address": spec.gateway_cidr,
        }


class SNATIPAddressAllocationTask(PolicyTask):
    slot = "snat_ip_address_alloc_ref"
    label = "SNAT IP address allocation"
    kind = kinds.IP_ALLOCATION
    parent_slot = "snat_ip_pool_ref"


class SNATRuleTask(PolicyTask):
    slot = "snat_rule_ref"
    label = "SNAT rule"
    kind = kinds.NAT_RULE
    parent_slot = "tier1_gateway_ref"

    def desired_attributes(self, spec: InfraSpec, state: InfraState) -> Dict[str, Any]:
        if not state.snat_ip_address:
            raise RemoteAPIError("SNAT IP address not realized yet")
        return {
            "action": "SNAT",
            "source_network": spec.workers_network,
            "translated_network": state.snat_ip_address,
        }


class SNATIPAddressRealizationTask(Task):
    """Copy the realized address of the SNAT allocation into the state.

    Owns no remote object, so there is nothing to recover or delete.
    """

    label = "SNAT IP address realization"

    def ensure(self, ctx: "EnsurerContext", spec: InfraSpec, state: InfraState) -> Action:
        allocation = require(state, "snat_ip_address_alloc_ref")
        obj = ctx.policy.get(kinds.IP_ALLOCATION, allocation.id)
        address = obj.attributes.get("allocation_ip")
        if not address:
            raise RemoteAPIError(f"address allocation {allocation.id} not realized yet")
        if state.snat_ip_address == address:
            return Action.UNCHANGED
        state.snat_ip_address = str(address)
        return Action.FOUND

    def ensure_deleted(self, ctx: "EnsurerContext", state: InfraState) -> bool:
        state.snat_ip_address = None
        return False

    def name_to_log(self, spec: InfraSpec) -> Optional[str]:
        return None
