"""YAML configuration loader for the NSX-T infrastructure agent."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

import yaml

from nsxt_infra import client as kinds
from nsxt_infra.config import InfraSpec

DEFAULT_STATE_PATH = Path("/var/lib/nsxt-infra/state.json")

SEED_KINDS = {
    "tier0": kinds.TIER0,
    "transport_zone": kinds.TRANSPORT_ZONE,
    "edge_cluster": kinds.EDGE_CLUSTER,
    "ip_pool": kinds.IP_POOL,
}


@dataclass
class SeedObject:
    kind: str
    display_name: str
    attributes: Dict[str, Any] = field(default_factory=dict)


@dataclass
class BackendConfig:
    type: str = "memory"
    path: Optional[Path] = None
    seed: Sequence[SeedObject] = field(default_factory=list)


@dataclass
class WatcherConfig:
    type: str
    path: Path
    interval: float = 30.0
    max_backoff: float = 300.0


@dataclass
class AgentConfig:
    infrastructure: Optional[InfraSpec]
    backend: BackendConfig = field(default_factory=BackendConfig)
    state_path: Path = DEFAULT_STATE_PATH
    try_recover: bool = True
    watchers: Sequence[WatcherConfig] = field(default_factory=list)


def parse_spec(section: dict) -> InfraSpec:
    """Build an :class:`InfraSpec` from a mapping, rejecting unknown keys."""

    if not isinstance(section, dict):
        raise ValueError("'infrastructure' section must be a mapping")
    known = {f.name for f in fields(InfraSpec)}
    unknown = set(section) - known
    if unknown:
        raise ValueError(f"unknown infrastructure keys: {', '.join(sorted(unknown))}")
    missing = [
        f.name
        for f in fields(InfraSpec)
        if f.name not in section and f.name not in ("dns_servers", "dhcp_lease_time")
    ]
    if missing:
        raise ValueError(f"infrastructure missing keys: {', '.join(missing)}")
    dns_servers = section.get("dns_servers", [])
    if not isinstance(dns_servers, list):
        raise ValueError("'dns_servers' must be a list")

    return InfraSpec(
        environment_name=str(section["environment_name"]),
        cluster_name=str(section["cluster_name"]),
        owner_id=str(section["owner_id"]),
        workers_network=str(section["workers_network"]),
        tier0_gateway_name=str(section["tier0_gateway_name"]),
        transport_zone_name=str(section["transport_zone_name"]),
        edge_cluster_name=str(section["edge_cluster_name"]),
        snat_ip_pool_name=str(section["snat_ip_pool_name"]),
        dns_servers=tuple(str(s) for s in dns_servers),
        dhcp_lease_time=int(section.get("dhcp_lease_time", 3600)),
    )


def load_spec(path: Path) -> InfraSpec:
    """Read a spec file: either a bare mapping or one with an ``infrastructure`` key."""

    data = yaml.safe_load(path.read_text())
    if not isinstance(data, dict):
        raise ValueError(f"spec file {path} must contain a mapping")
    return parse_spec(data.get("infrastructure", data))


def _parse_seed(entries: Iterable[dict]) -> List[SeedObject]:
    seed: List[SeedObject] = []
    for entry in entries:
        kind = str(entry["kind"])
        if kind not in SEED_KINDS:
            raise ValueError(f"Unsupported seed kind '{kind}'")
        attributes = entry.get("attributes", {})
        if not isinstance(attributes, dict):
            raise ValueError("seed 'attributes' must be a mapping if provided")
        seed.append(
            SeedObject(
                kind=SEED_KINDS[kind],
                display_name=str(entry["display_name"]),
                attributes=attributes,
            )
        )
    return seed


def _parse_backend(section: dict) -> BackendConfig:
    if not isinstance(section, dict):
        raise ValueError("'backend' section must be a mapping")
    backend_type = str(section.get("type", "memory"))
    if backend_type != "memory":
        raise ValueError(f"unsupported backend type '{backend_type}'")
    path = section.get("path")
    return BackendConfig(
        type=backend_type,
        path=Path(path) if path else None,
        seed=_parse_seed(section.get("seed", [])),
    )


def _parse_watchers(entries: Iterable[dict]) -> List[WatcherConfig]:
    watchers: List[WatcherConfig] = []
    for entry in entries:
        interval = float(entry.get("interval", 30.0))
        watchers.append(
            WatcherConfig(
                type=str(entry["type"]),
                path=Path(entry.get("path", ".")),
                interval=interval,
                max_backoff=float(entry.get("max_backoff", max(interval, 300.0))),
            )
        )
    return watchers


def load_config(path: Path) -> AgentConfig:
    data = yaml.safe_load(path.read_text())
    if not isinstance(data, dict):
        raise ValueError("Agent configuration must be a mapping")

    infra_section = data.get("infrastructure")
    spec = parse_spec(infra_section) if infra_section is not None else None

    backend = _parse_backend(data.get("backend", {}))

    watchers_section = data.get("watchers", [])
    if not isinstance(watchers_section, list):
        raise ValueError("'watchers' section must be a list")
    watchers = _parse_watchers(watchers_section)

    if spec is None and not watchers:
        raise ValueError("Configuration needs an 'infrastructure' section or a watcher")

    return AgentConfig(
        infrastructure=spec,
        backend=backend,
        state_path=Path(data.get("state_path", DEFAULT_STATE_PATH)),
        try_recover=bool(data.get("try_recover", True)),
        watchers=watchers,
    )
