"""Control plane backends the agent can talk to.

Only the in-memory lab backend ships with the agent.  Real NSX-T SDK clients
satisfy the same :class:`~nsxt_infra.client.PolicyClient` and
:class:`~nsxt_infra.client.ManagerClient` protocols and are wired by the
embedding service.
"""

from __future__ import annotations

import logging
from typing import Optional

from nsxt_infra.client import ManagerClient, PolicyClient
from nsxt_infra.memory import InMemoryControlPlane

from .config import BackendConfig

LOG = logging.getLogger(__name__)


class Backend:
    """Client handles plus a hook to persist lab state after each run."""

    def __init__(
        self,
        policy: PolicyClient,
        manager: ManagerClient,
        plane: Optional[InMemoryControlPlane] = None,
        config: Optional[BackendConfig] = None,
    ) -> None:
        self.policy = policy
        self.manager = manager
        self._plane = plane
        self._config = config

    @property
    def plane(self) -> Optional[InMemoryControlPlane]:
        return self._plane

    def flush(self) -> None:
        if self._plane is not None and self._config is not None and self._config.path:
            self._plane.save(self._config.path)
            LOG.debug("saved lab control plane to %s", self._config.path)


def build_backend(config: BackendConfig) -> Backend:
    if config.type != "memory":
        raise ValueError(f"unsupported backend type '{config.type}'")

    if config.path and config.path.exists():
        plane = InMemoryControlPlane.load(config.path)
    else:
        plane = InMemoryControlPlane()
        for seed in config.seed:
            plane.add_existing(seed.kind, seed.display_name, attributes=seed.attributes)
        LOG.info("created lab control plane with %d seeded objects", len(config.seed))

    return Backend(plane.policy, plane.manager, plane=plane, config=config)
