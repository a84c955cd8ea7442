"""Client interfaces for the remote control plane.

The ensurer never talks to the control plane directly; tasks reach it through
the two client handles carried by the :class:`~nsxt_infra.ensurer.EnsurerContext`.
We keep the interfaces narrow so the concrete SDK wrapper (connection, auth,
timeouts) stays outside this package and tests can plug in
:class:`~nsxt_infra.memory.InMemoryControlPlane`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence

from .config import Reference, Tag

# Policy API resource kinds
TIER0 = "Tier0"
TRANSPORT_ZONE = "PolicyTransportZone"
EDGE_CLUSTER = "PolicyEdgeCluster"
IP_POOL = "IpAddressPool"
TIER1 = "Tier1"
LOCALE_SERVICES = "LocaleServices"
SEGMENT = "Segment"
IP_ALLOCATION = "IpAddressAllocation"
NAT_RULE = "PolicyNatRule"

# Manager (advanced) API resource kinds
LOGICAL_SWITCH = "LogicalSwitch"
DHCP_PROFILE = "DhcpProfile"
DHCP_SERVER = "LogicalDhcpServer"
LOGICAL_PORT = "LogicalPort"
DHCP_IP_POOL = "DhcpIpPool"


@dataclass
class RemoteObject:
    """Object as returned by either API."""

    id: str
    kind: str
    display_name: str
    path: Optional[str] = None
    parent_path: Optional[str] = None
    tags: Dict[str, str] = field(default_factory=dict)
    attributes: Dict[str, Any] = field(default_factory=dict)

    def reference(self) -> Reference:
        return Reference(id=self.id, path=self.path)

    def has_tags(self, tags: Mapping[str, str]) -> bool:
        return all(self.tags.get(scope) == value for scope, value in tags.items())


class PolicyClient(Protocol):
    """Declarative Policy API.

    ``list`` has no server side tag filter; callers filter the result.
    """

    def get(self, kind: str, object_id: str) -> RemoteObject:
        """Return the object or raise :class:`~nsxt_infra.errors.NotFoundError`."""

    def list(self, kind: str, parent_path: Optional[str] = None) -> List[RemoteObject]:
        """List objects of ``kind``, optionally below ``parent_path``."""

    def create(
        self,
        kind: str,
        display_name: str,
        parent_path: Optional[str] = None,
        tags: Sequence[Tag] = (),
        attributes: Optional[Mapping[str, Any]] = None,
    ) -> RemoteObject:
        """Create an object and return it."""

    def update(
        self,
        kind: str,
        object_id: str,
        display_name: str,
        tags: Sequence[Tag] = (),
        attributes: Optional[Mapping[str, Any]] = None,
    ) -> RemoteObject:
        """Replace name, tags and attributes of an existing object."""

    def delete(self, kind: str, object_id: str) -> None:
        """Delete an object or raise :class:`~nsxt_infra.errors.NotFoundError`."""


class ManagerClient(Protocol):
    """Imperative Manager API used for the advanced DHCP objects."""

    def get(self, kind: str, object_id: str) -> RemoteObject:
        """Return the object or raise :class:`~nsxt_infra.errors.NotFoundError`."""

    def list(self, kind: str) -> List[RemoteObject]:
        """List all objects of ``kind``."""

    def search(self, kind: str, tags: Mapping[str, str]) -> List[RemoteObject]:
        """Return objects of ``kind`` carrying all of ``tags``."""

    def create(
        self,
        kind: str,
        display_name: str,
        tags: Optional[Mapping[str, str]] = None,
        attributes: Optional[Mapping[str, Any]] = None,
    ) -> RemoteObject:
        """Create an object and return it."""

    def update(
        self,
        kind: str,
        object_id: str,
        display_name: str,
        tags: Optional[Mapping[str, str]] = None,
        attributes: Optional[Mapping[str, Any]] = None,
    ) -> RemoteObject:
        """Replace name, tags and attributes of an existing object."""

    def delete(self, kind: str, object_id: str) -> None:
        """Delete an object or raise :class:`~nsxt_infra.errors.NotFoundError`."""


def tags_to_mapping(tags: Sequence[Tag]) -> Dict[str, str]:
    return {tag.scope: tag.tag for tag in tags}
