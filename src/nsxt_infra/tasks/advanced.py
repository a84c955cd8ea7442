"""DHCP tasks using the Manager (advanced) API.

The Policy API of older control planes cannot serve DHCP on a segment, so the
ensurer falls back to the Manager API: a DHCP profile on the edge cluster, a
logical DHCP server, a port attaching the server to the segment's logical
switch and the lease pool.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional

from .. import client as kinds
from ..client import RemoteObject
from ..config import InfraSpec, InfraState
from .base import CommonTagRecovery
from .managed import ManagedTask, require

if TYPE_CHECKING:  # pragma: no cover
    from ..ensurer import EnsurerContext


class AdvancedTask(ManagedTask):
    """Owned Manager API object, recoverable through the common tags."""

    recovery = CommonTagRecovery()

    def desired_tags(self, spec: InfraSpec) -> Dict[str, str]:
        return dict(spec.create_common_tags())

    def recovery_candidates(
        self, ctx: "EnsurerContext", state: InfraState, tags: Mapping[str, str]
    ) -> Optional[List[RemoteObject]]:
        return ctx.manager.search(self.kind, tags)

    def _get(self, ctx: "EnsurerContext", object_id: str) -> RemoteObject:
        return ctx.manager.get(self.kind, object_id)

    def _create(
        self,
        ctx: "EnsurerContext",
        state: InfraState,
        name: str,
        tags: Dict[str, str],
        attributes: Dict[str, Any],
    ) -> RemoteObject:
        return ctx.manager.create(self.kind, name, tags=tags, attributes=attributes)

    def _update(
        self,
        ctx: "EnsurerContext",
        object_id: str,
        name: str,
        tags: Dict[str, str],
        attributes: Dict[str, Any],
    ) -> RemoteObject:
        return ctx.manager.update(self.kind, object_id, name, tags=tags, attributes=attributes)

    def _delete(self, ctx: "EnsurerContext", object_id: str) -> None:
        ctx.manager.delete(self.kind, object_id)


class AdvancedDHCPProfileTask(AdvancedTask):
    slot = "dhcp_profile_ref"
    label = "advanced DHCP profile"
    kind = kinds.DHCP_PROFILE

    def desired_attributes(self, spec: InfraSpec, state: InfraState) -> Dict[str, Any]:
        return {"edge_cluster_id": require(state, "edge_cluster_ref").id}


class AdvancedDHCPServerTask(AdvancedTask):
    slot = "dhcp_server_ref"
    label = "advanced DHCP server"
    kind = kinds.DHCP_SERVER

    def desired_attributes(self, spec: InfraSpec, state: InfraState) -> Dict[str, Any]:
        return {
            "dhcp_profile_id": require(state, "dhcp_profile_ref").id,
            "server_ip": f"{spec.dhcp_server_address}/{spec.network.prefixlen}",
            "gateway_ip": spec.gateway_address,
            "dns_nameservers": list(spec.dns_servers),
            "lease_time": spec.dhcp_lease_time,
        }


class AdvancedDHCPPortTask(AdvancedTask):
    slot = "dhcp_port_ref"
    label = "advanced DHCP port"
    kind = kinds.LOGICAL_PORT

    def desired_attributes(self, spec: InfraSpec, state: InfraState) -> Dict[str, Any]:
        return {
            "logical_switch_id": require(state, "logical_switch_ref").id,
            "attachment_type": "DHCP_SERVICE",
            "attachment_id": require(state, "dhcp_server_ref").id,
        }


class AdvancedDHCPIPPoolTask(AdvancedTask):
    slot = "dhcp_ip_pool_ref"
    label = "advanced DHCP IP pool"
    kind = kinds.DHCP_IP_POOL

    def desired_attributes(self, spec: InfraSpec, state: InfraState) -> Dict[str, Any]:
        start, end = spec.dhcp_range
        return {
            "dhcp_server_id": require(state, "dhcp_server_ref").id,
            "range_start": start,
            "range_end": end,
            "gateway_ip": spec.gateway_address,
            "lease_time": spec.dhcp_lease_time,
        }
