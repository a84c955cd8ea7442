#!/usr/bin/env python3
"""Run a full create / recover / delete cycle against the lab control plane."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[2]
SRC_PATH = REPO_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from nsxt_infra import client as kinds  # noqa: E402
from nsxt_infra.config import InfraSpec, InfraState  # noqa: E402
from nsxt_infra.ensurer import NSXTInfraEnsurer  # noqa: E402
from nsxt_infra.memory import InMemoryControlPlane  # noqa: E402

LOG = logging.getLogger(__name__)


class ValidationError(RuntimeError):
    pass


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--workers-network",
        default="10.250.0.0/24",
        help="Workers CIDR of the simulated cluster",
    )
    parser.add_argument(
        "--snapshot",
        type=Path,
        default=None,
        help="Write the control plane snapshot after reconcile to this file",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    return parser.parse_args()


def build_plane() -> InMemoryControlPlane:
    plane = InMemoryControlPlane()
    plane.add_existing(kinds.TIER0, "tier0-lab")
    plane.add_existing(kinds.TRANSPORT_ZONE, "tz-overlay")
    plane.add_existing(kinds.EDGE_CLUSTER, "edge-cluster-1")
    plane.add_existing(kinds.IP_POOL, "snat-pool", attributes={"cidr": "192.0.2.0/28"})
    return plane


def check(condition: bool, message: str) -> None:
    if not condition:
        raise ValidationError(message)


def main() -> int:
    args = parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(message)s",
    )

    spec = InfraSpec(
        environment_name="lab",
        cluster_name="demo",
        owner_id="lab-owner",
        workers_network=args.workers_network,
        tier0_gateway_name="tier0-lab",
        transport_zone_name="tz-overlay",
        edge_cluster_name="edge-cluster-1",
        snat_ip_pool_name="snat-pool",
        dns_servers=["192.0.2.53"],
    )
    plane = build_plane()
    ensurer = NSXTInfraEnsurer(plane.policy, plane.manager)

    state = InfraState()
    ensurer.ensure_infrastructure(spec, state)
    created = plane.count_calls("create")
    LOG.info("first reconcile created %d objects", created)

    ensurer.ensure_infrastructure(spec, state)
    check(plane.count_calls("create") == created, "second reconcile created objects")

    if args.snapshot:
        plane.save(args.snapshot)
        LOG.info("snapshot written to %s", args.snapshot)

    # a state that lost every reference must be repaired without duplicates
    lost = InfraState()
    ensurer.ensure_infrastructure(spec, lost)
    check(plane.count_calls("create") == created, "recovery created duplicates")
    check(lost.references() == state.references(), "recovered references differ")

    ensurer.ensure_infrastructure_deleted(spec, InfraState())
    leftovers = [
        obj for obj in plane.objects() if obj.tags.get("nsxt-infra/owner") == spec.owner_id
    ]
    check(not leftovers, f"objects left after delete: {leftovers}")

    LOG.info("lifecycle simulation passed")
    return 0


if __name__ == "__main__":
    try:
        sys.exit(main())
    except ValidationError as exc:
        print(f"validation failed: {exc}", file=sys.stderr)
        sys.exit(1)
