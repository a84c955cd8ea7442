"""NSX-T infrastructure ensurer.

This package reconciles the network topology of one cluster against an NSX-T
control plane and tears it down again.  The topology is fixed: a tier-1
gateway attached to a pre-existing tier-0, its locale service, the workers
segment, a SNAT address with its NAT rule, and a DHCP server built with the
Manager API.

The entry point is :class:`nsxt_infra.ensurer.NSXTInfraEnsurer`.  It runs the
tasks of :mod:`nsxt_infra.tasks` in order and guarantees that

* remote objects are created at most once across repeated runs, even when the
  persisted :class:`~nsxt_infra.config.InfraState` lost a reference (objects
  are found again by their tags);
* a failing task stops the run and leaves earlier progress in the state;
* deletion unwinds the creation order, child before parent.

The concrete SDK clients stay outside of this package; tests and the lab
backend use :class:`nsxt_infra.memory.InMemoryControlPlane`.
"""

from .config import InfraSpec, InfraState, Reference, Tag  # noqa: F401
from .ensurer import EnsurerContext, NSXTInfraEnsurer  # noqa: F401

__all__ = [
    "EnsurerContext",
    "InfraSpec",
    "InfraState",
    "NSXTInfraEnsurer",
    "Reference",
    "Tag",
]
