"""Event primitives consumed by the handler registry."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from nsxt_infra.config import InfraSpec


@dataclass(frozen=True)
class InfraUpsert:
    """Desired topology for a cluster.

    Publishers send the full spec on every cycle; handlers reconcile, which is
    cheap when nothing changed.
    """

    spec: InfraSpec


@dataclass(frozen=True)
class InfraDelete:
    """Signals that the topology should be removed.

    ``spec`` is the last known spec, if any.  Without it the handlers delete
    only what the persisted state references.
    """

    spec: Optional[InfraSpec] = None
