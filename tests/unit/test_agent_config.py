from pathlib import Path

import pytest

from nsxt_infra import client as kinds
from nsxt_infra_agent.config import load_config, load_spec


def test_load_config(tmp_path: Path):
    config_path = tmp_path / "agent.yaml"
    config_path.write_text(
        """
infrastructure:
  environment_name: lab
  cluster_name: demo
  owner_id: owner-1
  workers_network: 10.250.0.0/24
  tier0_gateway_name: tier0
  transport_zone_name: tz-overlay
  edge_cluster_name: edge-1
  snat_ip_pool_name: snat-pool
  dns_servers:
    - 10.0.0.53
  dhcp_lease_time: 7200
backend:
  type: memory
  path: /var/lib/nsxt-infra/plane.json
  seed:
    - kind: tier0
      display_name: tier0
    - kind: ip_pool
      display_name: snat-pool
      attributes:
        cidr: 192.0.2.0/28
state_path: /var/lib/nsxt-infra/state.json
try_recover: false
watchers:
  - type: file
    path: /etc/nsxt-infra/infra.yaml
    interval: 2
"""
    )

    cfg = load_config(config_path)

    spec = cfg.infrastructure
    assert spec is not None
    assert spec.full_cluster_name == "lab--demo"
    assert spec.dns_servers == ("10.0.0.53",)
    assert spec.dhcp_lease_time == 7200
    assert cfg.backend.path == Path("/var/lib/nsxt-infra/plane.json")
    assert [s.kind for s in cfg.backend.seed] == [kinds.TIER0, kinds.IP_POOL]
    assert cfg.backend.seed[1].attributes == {"cidr": "192.0.2.0/28"}
    assert cfg.state_path == Path("/var/lib/nsxt-infra/state.json")
    assert cfg.try_recover is False
    assert len(cfg.watchers) == 1
    watcher = cfg.watchers[0]
    assert watcher.type == "file"
    assert watcher.path == Path("/etc/nsxt-infra/infra.yaml")
    assert watcher.interval == pytest.approx(2.0)
    assert watcher.max_backoff == pytest.approx(300.0)


def test_load_config_rejects_unknown_infrastructure_keys(tmp_path: Path):
    config_path = tmp_path / "agent.yaml"
    config_path.write_text(
        """
infrastructure:
  environment_name: lab
  cluster: demo
"""
    )

    with pytest.raises(ValueError, match="unknown infrastructure keys: cluster"):
        load_config(config_path)


def test_load_config_requires_spec_or_watcher(tmp_path: Path):
    config_path = tmp_path / "agent.yaml"
    config_path.write_text("backend:\n  type: memory\n")

    with pytest.raises(ValueError):
        load_config(config_path)


def test_load_config_rejects_unknown_backend(tmp_path: Path):
    config_path = tmp_path / "agent.yaml"
    config_path.write_text(
        """
backend:
  type: nsxt
watchers:
  - type: file
    path: spec.yaml
"""
    )

    with pytest.raises(ValueError, match="unsupported backend type 'nsxt'"):
        load_config(config_path)


def test_load_spec_accepts_bare_mapping(tmp_path: Path):
    spec_path = tmp_path / "infra.yaml"
    spec_path.write_text(
        """
environment_name: lab
cluster_name: demo
owner_id: owner-1
workers_network: 10.250.0.0/24
tier0_gateway_name: tier0
transport_zone_name: tz
edge_cluster_name: edge
snat_ip_pool_name: snat-pool
"""
    )

    spec = load_spec(spec_path)

    assert spec.cluster_name == "demo"
    assert spec.dns_servers == ()
    assert spec.dhcp_lease_time == 3600


def test_load_spec_rejects_scalar_dns_servers(tmp_path: Path):
    spec_path = tmp_path / "infra.yaml"
    spec_path.write_text(
        """
environment_name: lab
cluster_name: demo
owner_id: owner-1
workers_network: 10.250.0.0/24
tier0_gateway_name: tier0
transport_zone_name: tz
edge_cluster_name: edge
snat_ip_pool_name: snat-pool
dns_servers: 10.0.0.53
"""
    )

    with pytest.raises(ValueError, match="'dns_servers' must be a list"):
        load_spec(spec_path)
