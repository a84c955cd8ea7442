from pathlib import Path

from nsxt_infra import client as kinds
from nsxt_infra.memory import InMemoryControlPlane
from nsxt_infra_agent.main import main
from nsxt_infra_agent.state_store import StateStore

INFRASTRUCTURE = """
infrastructure:
  environment_name: lab
  cluster_name: demo
  owner_id: owner-1
  workers_network: 10.250.0.0/24
  tier0_gateway_name: tier0
  transport_zone_name: tz
  edge_cluster_name: edge
  snat_ip_pool_name: snat-pool
"""

BACKEND = """
backend:
  type: memory
  path: {plane}
  seed:
{seed}
state_path: {state}
"""

SEED = [
    ("tier0", "tier0"),
    ("transport_zone", "tz"),
    ("edge_cluster", "edge"),
    ("ip_pool", "snat-pool"),
]


def write_config(tmp_path: Path, *, infrastructure=True, seed=SEED) -> Path:
    entries = []
    for kind, name in seed:
        entries.append(f"    - kind: {kind}\n      display_name: {name}")
        if kind == "ip_pool":
            entries.append("      attributes:\n        cidr: 192.0.2.0/28")
    body = BACKEND.format(
        plane=tmp_path / "plane.json",
        state=tmp_path / "state.json",
        seed="\n".join(entries),
    )
    if infrastructure:
        body = INFRASTRUCTURE + body
    else:
        body += "watchers:\n  - type: file\n    path: infra.yaml\n"
    config_path = tmp_path / "agent.yaml"
    config_path.write_text(body)
    return config_path


def load_plane(tmp_path: Path) -> InMemoryControlPlane:
    return InMemoryControlPlane.load(tmp_path / "plane.json")


def test_reconcile_then_delete(tmp_path: Path):
    config = write_config(tmp_path)

    assert main(["--config", str(config), "reconcile"]) == 0
    assert main(["--config", str(config), "reconcile"]) == 0

    plane = load_plane(tmp_path)
    assert len(plane.objects(kinds.TIER1)) == 1
    assert len(plane.objects(kinds.DHCP_IP_POOL)) == 1
    assert StateStore(tmp_path / "state.json").load().segment_ref is not None

    assert main(["--config", str(config), "delete"]) == 0

    plane = load_plane(tmp_path)
    assert plane.objects(kinds.TIER1) == []
    assert len(plane.objects(kinds.TIER0)) == 1
    assert StateStore(tmp_path / "state.json").load().is_empty()


def test_delete_recovers_after_state_loss(tmp_path: Path):
    config = write_config(tmp_path)
    assert main(["--config", str(config), "reconcile"]) == 0
    (tmp_path / "state.json").unlink()

    assert main(["--config", str(config), "delete", "--no-recover"]) == 0
    assert len(load_plane(tmp_path).objects(kinds.TIER1)) == 1

    assert main(["--config", str(config), "delete"]) == 0
    assert load_plane(tmp_path).objects(kinds.TIER1) == []


def test_failed_reconcile_exits_with_error(tmp_path: Path):
    config = write_config(tmp_path, seed=SEED[1:])

    assert main(["--config", str(config), "reconcile"]) == 1
    assert StateStore(tmp_path / "state.json").load().is_empty()


def test_reconcile_needs_infrastructure(tmp_path: Path):
    config = write_config(tmp_path, infrastructure=False)

    assert main(["--config", str(config), "reconcile"]) == 2
    assert main(["--config", str(config), "delete", "--no-recover"]) == 0


def test_service_config_disables_recovery(tmp_path: Path):
    config = write_config(tmp_path)
    service = tmp_path / "service.conf"
    service.write_text("[nsxt_infra]\ntry_recover = false\n")
    assert main(["--config", str(config), "reconcile"]) == 0
    (tmp_path / "state.json").unlink()

    args = ["--config", str(config), "--service-config", str(service), "reconcile"]
    assert main(args) == 0

    assert len(load_plane(tmp_path).objects(kinds.TIER1)) == 2
