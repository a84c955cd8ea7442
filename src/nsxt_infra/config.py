"""Data structures describing the desired topology and the persisted state.

:class:`InfraSpec` is the immutable input of a reconcile run.  :class:`InfraState`
is the mutable record the caller persists between runs; every task owns one
slot in it holding the :class:`Reference` of the remote object it created or
looked up.
"""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional, Sequence, Tuple

SCOPE_OWNER = "nsxt-infra/owner"
SCOPE_CLUSTER = "nsxt-infra/cluster"


@dataclass(frozen=True)
class Tag:
    """Policy API tag."""

    scope: str
    tag: str


@dataclass(frozen=True)
class Reference:
    """Pointer to a remote object.

    Attributes
    ----------
    id:
        Remote identifier.
    path:
        Policy path of the object.  Later tasks use it as parent pointer.
        Manager (advanced API) objects have no path.
    """

    id: str
    path: Optional[str] = None

    def to_dict(self) -> Dict[str, str]:
        data = {"id": self.id}
        if self.path:
            data["path"] = self.path
        return data

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> Optional["Reference"]:
        if not data:
            return None
        return cls(id=str(data["id"]), path=data.get("path"))


@dataclass(frozen=True)
class InfraSpec:
    """Desired topology for one cluster."""

    environment_name: str
    cluster_name: str
    owner_id: str
    workers_network: str
    tier0_gateway_name: str
    transport_zone_name: str
    edge_cluster_name: str
    snat_ip_pool_name: str
    dns_servers: Sequence[str] = ()
    dhcp_lease_time: int = 3600

    def __post_init__(self) -> None:
        network = ipaddress.ip_network(self.workers_network, strict=True)
        if network.version != 4:
            raise ValueError(f"workers network {self.workers_network} is not IPv4")
        # gateway, DHCP server and at least one lease
        if network.num_addresses < 8:
            raise ValueError(f"workers network {self.workers_network} is too small")
        object.__setattr__(self, "dns_servers", tuple(self.dns_servers))

    @property
    def full_cluster_name(self) -> str:
        return f"{self.environment_name}--{self.cluster_name}"

    def create_tags(self) -> List[Tag]:
        """Tags attached to every Policy API object created for this cluster."""

        return [
            Tag(scope=SCOPE_OWNER, tag=self.owner_id),
            Tag(scope=SCOPE_CLUSTER, tag=self.full_cluster_name),
        ]

    def create_common_tags(self) -> Dict[str, str]:
        """The same labels in the Manager API's mapping shape."""

        return {tag.scope: tag.tag for tag in self.create_tags()}

    # ------------------------------------------------------------------
    # Addressing derived from the workers network
    # ------------------------------------------------------------------
    @property
    def network(self) -> ipaddress.IPv4Network:
        return ipaddress.ip_network(self.workers_network)

    @property
    def gateway_address(self) -> str:
        return str(self.network.network_address + 1)

    @property
    def gateway_cidr(self) -> str:
        return f"{self.gateway_address}/{self.network.prefixlen}"

    @property
    def dhcp_server_address(self) -> str:
        return str(self.network.network_address + 2)

    @property
    def dhcp_range(self) -> Tuple[str, str]:
        """First and last address handed out by the DHCP pool."""

        network = self.network
        return (
            str(network.network_address + 3),
            str(network.broadcast_address - 1),
        )


@dataclass
class InfraState:
    """Mutable runtime state persisted by the caller between runs."""

    tier0_gateway_ref: Optional[Reference] = None
    transport_zone_ref: Optional[Reference] = None
    edge_cluster_ref: Optional[Reference] = None
    snat_ip_pool_ref: Optional[Reference] = None
    tier1_gateway_ref: Optional[Reference] = None
    locale_service_ref: Optional[Reference] = None
    segment_ref: Optional[Reference] = None
    snat_ip_address_alloc_ref: Optional[Reference] = None
    snat_rule_ref: Optional[Reference] = None
    logical_switch_ref: Optional[Reference] = None
    dhcp_profile_ref: Optional[Reference] = None
    dhcp_server_ref: Optional[Reference] = None
    dhcp_port_ref: Optional[Reference] = None
    dhcp_ip_pool_ref: Optional[Reference] = None
    snat_ip_address: Optional[str] = None

    def get_reference(self, slot: str) -> Optional[Reference]:
        return getattr(self, slot)

    def set_reference(self, slot: str, reference: Optional[Reference]) -> None:
        if not hasattr(self, slot):
            raise AttributeError(f"unknown state slot '{slot}'")
        setattr(self, slot, reference)

    def references(self) -> Dict[str, Reference]:
        """Return all populated reference slots."""

        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if f.name.endswith("_ref") and getattr(self, f.name) is not None
        }

    def is_empty(self) -> bool:
        return not self.references() and self.snat_ip_address is None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None:
                continue
            key = _camel(f.name)
            data[key] = value.to_dict() if isinstance(value, Reference) else value
        return data

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "InfraState":
        state = cls()
        if not data:
            return state
        for f in fields(cls):
            raw = data.get(_camel(f.name))
            if raw is None:
                continue
            if f.name.endswith("_ref"):
                setattr(state, f.name, Reference.from_dict(raw))
            else:
                setattr(state, f.name, str(raw))
        return state


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)
