import pytest

from nsxt_infra import client as kinds
from nsxt_infra.config import InfraSpec, InfraState, Reference
from nsxt_infra.ensurer import NSXTInfraEnsurer
from nsxt_infra.errors import (
    ConsistencyError,
    DependencyError,
    LookupFailedError,
    TaskFailedError,
)
from nsxt_infra.memory import InMemoryControlPlane
from nsxt_infra.tasks import Action
from nsxt_infra.tasks.advanced import AdvancedDHCPServerTask
from nsxt_infra.tasks.lookup import LookupTier0GatewayTask
from nsxt_infra.tasks.managed import ManagedTask
from nsxt_infra.tasks.policy import (
    SNATIPAddressRealizationTask,
    SegmentTask,
    Tier1GatewayTask,
)

OWNED_KINDS = [
    kinds.TIER1,
    kinds.LOCALE_SERVICES,
    kinds.SEGMENT,
    kinds.IP_ALLOCATION,
    kinds.NAT_RULE,
    kinds.DHCP_PROFILE,
    kinds.DHCP_SERVER,
    kinds.LOGICAL_PORT,
    kinds.DHCP_IP_POOL,
]


def build_spec(**overrides) -> InfraSpec:
    values = dict(
        environment_name="lab",
        cluster_name="demo",
        owner_id="owner-1",
        workers_network="10.250.0.0/24",
        tier0_gateway_name="tier0",
        transport_zone_name="tz",
        edge_cluster_name="edge",
        snat_ip_pool_name="snat-pool",
        dns_servers=["10.0.0.53"],
    )
    values.update(overrides)
    return InfraSpec(**values)


def build_plane() -> InMemoryControlPlane:
    plane = InMemoryControlPlane()
    plane.add_existing(kinds.TIER0, "tier0")
    plane.add_existing(kinds.TRANSPORT_ZONE, "tz")
    plane.add_existing(kinds.EDGE_CLUSTER, "edge")
    plane.add_existing(kinds.IP_POOL, "snat-pool", attributes={"cidr": "192.0.2.0/28"})
    return plane


def build_ensurer(plane: InMemoryControlPlane) -> NSXTInfraEnsurer:
    return NSXTInfraEnsurer(plane.policy, plane.manager)


def test_reconcile_creates_full_topology():
    plane = build_plane()
    state = InfraState()

    build_ensurer(plane).ensure_infrastructure(build_spec(), state)

    for kind in OWNED_KINDS:
        assert plane.count_calls("create", kind) == 1, kind
    assert state.snat_ip_address == "192.0.2.1"
    assert state.tier1_gateway_ref.path.startswith("/infra/tier-1s/")
    assert state.locale_service_ref.path.startswith(state.tier1_gateway_ref.path)

    segment = plane.policy.get(kinds.SEGMENT, state.segment_ref.id)
    assert segment.attributes["connectivity_path"] == state.tier1_gateway_ref.path
    assert segment.attributes["gateway_address"] == "10.250.0.1/24"
    assert segment.tags == {
        "nsxt-infra/owner": "owner-1",
        "nsxt-infra/cluster": "lab--demo",
    }

    rule = plane.policy.get(kinds.NAT_RULE, state.snat_rule_ref.id)
    assert rule.attributes["translated_network"] == "192.0.2.1"
    assert rule.attributes["source_network"] == "10.250.0.0/24"

    pool = plane.manager.get(kinds.DHCP_IP_POOL, state.dhcp_ip_pool_ref.id)
    assert pool.attributes["range_start"] == "10.250.0.3"
    assert pool.attributes["range_end"] == "10.250.0.254"


def test_second_reconcile_creates_nothing():
    plane = build_plane()
    ensurer = build_ensurer(plane)
    state = InfraState()
    ensurer.ensure_infrastructure(build_spec(), state)
    before = state.to_dict()
    creates = plane.count_calls("create")

    ensurer.ensure_infrastructure(build_spec(), state)

    assert plane.count_calls("create") == creates
    assert plane.count_calls("update") == 0
    assert state.to_dict() == before


def test_ensure_reports_unchanged_for_existing_object():
    plane = build_plane()
    ensurer = build_ensurer(plane)
    state = InfraState()
    ensurer.ensure_infrastructure(build_spec(), state)

    action = Tier1GatewayTask().ensure(ensurer.new_context(), build_spec(), state)

    assert action is Action.UNCHANGED


def test_lost_references_are_recovered_without_duplicates():
    plane = build_plane()
    ensurer = build_ensurer(plane)
    original = InfraState()
    ensurer.ensure_infrastructure(build_spec(), original)
    creates = plane.count_calls("create")

    lost = InfraState()
    ensurer.ensure_infrastructure(build_spec(), lost)

    assert plane.count_calls("create") == creates
    assert lost.references() == original.references()
    assert lost.snat_ip_address == original.snat_ip_address


def test_ambiguous_recovery_falls_through_to_creation():
    plane = build_plane()
    spec = build_spec()
    tags = spec.create_tags()
    for _ in range(2):
        plane.policy.create(
            kinds.TIER1, spec.full_cluster_name, tags=tags, attributes={}
        )
    state = InfraState()

    build_ensurer(plane).ensure_infrastructure(spec, state)

    tier1s = plane.objects(kinds.TIER1)
    assert len(tier1s) == 3
    assert state.tier1_gateway_ref.id not in {t.id for t in tier1s[:2]}


def test_recovery_ignores_objects_of_other_clusters():
    plane = build_plane()
    other = build_spec(cluster_name="other")
    build_ensurer(plane).ensure_infrastructure(other, InfraState())
    state = InfraState()

    build_ensurer(plane).ensure_infrastructure(build_spec(), state)

    assert len(plane.objects(kinds.TIER1)) == 2
    tier1 = plane.policy.get(kinds.TIER1, state.tier1_gateway_ref.id)
    assert tier1.display_name == "lab--demo"


def test_stale_reference_raises_consistency_error_then_recreates():
    plane = build_plane()
    ensurer = build_ensurer(plane)
    state = InfraState()
    ensurer.ensure_infrastructure(build_spec(), state)
    stale = state.dhcp_profile_ref
    plane.remove(stale.id)

    with pytest.raises(TaskFailedError) as excinfo:
        ensurer.ensure_infrastructure(build_spec(), state)

    assert excinfo.value.label == "advanced DHCP profile"
    assert isinstance(excinfo.value.__cause__, ConsistencyError)
    assert state.dhcp_profile_ref is None

    ensurer.ensure_infrastructure(build_spec(), state)

    assert state.dhcp_profile_ref is not None
    assert state.dhcp_profile_ref != stale
    server = plane.manager.get(kinds.DHCP_SERVER, state.dhcp_server_ref.id)
    assert server.attributes["dhcp_profile_id"] == state.dhcp_profile_ref.id


def test_drifted_object_is_updated():
    plane = build_plane()
    ensurer = build_ensurer(plane)
    state = InfraState()
    ensurer.ensure_infrastructure(build_spec(), state)

    action = AdvancedDHCPServerTask().ensure(
        ensurer.new_context(), build_spec(dns_servers=["10.0.0.54"]), state
    )

    assert action is Action.UPDATED
    server = plane.manager.get(kinds.DHCP_SERVER, state.dhcp_server_ref.id)
    assert server.attributes["dns_nameservers"] == ["10.0.0.54"]


def test_lookup_failure_names_the_missing_object():
    plane = InMemoryControlPlane()
    state = InfraState()

    with pytest.raises(TaskFailedError) as excinfo:
        build_ensurer(plane).ensure_infrastructure(build_spec(), state)

    assert excinfo.value.label == "tier-0 gateway lookup"
    assert isinstance(excinfo.value.__cause__, LookupFailedError)
    assert "'tier0' not found" in str(excinfo.value)


def test_ambiguous_lookup_fails():
    plane = build_plane()
    plane.add_existing(kinds.TIER0, "tier0")
    ctx = build_ensurer(plane).new_context()

    with pytest.raises(LookupFailedError, match="ambiguous"):
        LookupTier0GatewayTask().ensure(ctx, build_spec(), InfraState())


def test_lookup_resolves_again_when_object_vanished():
    plane = build_plane()
    ctx = build_ensurer(plane).new_context()
    state = InfraState(tier0_gateway_ref=Reference(id="gone"))

    action = LookupTier0GatewayTask().ensure(ctx, build_spec(), state)

    assert action is Action.FOUND
    assert state.tier0_gateway_ref.id != "gone"


def test_task_without_parent_reference_fails():
    plane = build_plane()
    ctx = build_ensurer(plane).new_context()

    with pytest.raises(DependencyError):
        SegmentTask().ensure(ctx, build_spec(), InfraState())


def test_realization_copies_allocated_address():
    plane = build_plane()
    ensurer = build_ensurer(plane)
    state = InfraState()
    ensurer.ensure_infrastructure(build_spec(), state)
    state.snat_ip_address = None
    task = SNATIPAddressRealizationTask()

    assert task.ensure(ensurer.new_context(), build_spec(), state) is Action.FOUND
    assert state.snat_ip_address == "192.0.2.1"
    assert task.reference(state) is None
    assert task.ensure_deleted(ensurer.new_context(), state) is False
    assert state.snat_ip_address is None


def test_delete_removes_everything_created():
    plane = build_plane()
    ensurer = build_ensurer(plane)
    state = InfraState()
    ensurer.ensure_infrastructure(build_spec(), state)

    ensurer.ensure_infrastructure_deleted(build_spec(), state)

    assert state.is_empty()
    for kind in OWNED_KINDS + [kinds.LOGICAL_SWITCH]:
        assert plane.objects(kind) == [], kind
    assert len(plane.objects(kinds.TIER0)) == 1


def test_delete_recovers_orphans_when_state_was_lost():
    plane = build_plane()
    ensurer = build_ensurer(plane)
    ensurer.ensure_infrastructure(build_spec(), InfraState())

    ensurer.ensure_infrastructure_deleted(build_spec(), InfraState())

    for kind in OWNED_KINDS:
        assert plane.objects(kind) == [], kind


def test_delete_without_spec_only_deletes_referenced_objects():
    plane = build_plane()
    ensurer = build_ensurer(plane)
    state = InfraState()
    ensurer.ensure_infrastructure(build_spec(), state)
    state.dhcp_ip_pool_ref = None

    with pytest.raises(TaskFailedError) as excinfo:
        ensurer.ensure_infrastructure_deleted(None, state)

    # the unreferenced pool still points at the server
    assert excinfo.value.label == "advanced DHCP server"
    assert len(plane.objects(kinds.DHCP_IP_POOL)) == 1
    assert state.dhcp_server_ref is not None
    assert state.dhcp_port_ref is None
    assert state.tier1_gateway_ref is not None


def test_delete_treats_already_gone_objects_as_deleted():
    plane = build_plane()
    ensurer = build_ensurer(plane)
    state = InfraState()
    ensurer.ensure_infrastructure(build_spec(), state)
    plane.remove(state.snat_rule_ref.id)

    ensurer.ensure_infrastructure_deleted(None, state)

    assert state.is_empty()
    assert plane.objects(kinds.TIER1) == []


def test_delete_failure_is_resumable():
    plane = build_plane()
    ensurer = build_ensurer(plane)
    state = InfraState()
    ensurer.ensure_infrastructure(build_spec(), state)
    plane.fail_on("delete", kinds.SEGMENT, times=1)

    with pytest.raises(TaskFailedError, match="deleting segment failed"):
        ensurer.ensure_infrastructure_deleted(build_spec(), state)
    assert state.segment_ref is not None
    assert state.tier1_gateway_ref is not None

    ensurer.ensure_infrastructure_deleted(build_spec(), state)

    assert state.is_empty()
    assert plane.objects(kinds.SEGMENT) == []


def test_managed_task_requires_api_hooks():
    class Incomplete(ManagedTask):
        slot = "tier1_gateway_ref"
        label = "incomplete"

    with pytest.raises(TypeError):
        Incomplete()
