"""In-memory control plane.

Used by the unit tests and by the lab backend of the agent.  It behaves like a
small object database shared by a Policy and a Manager facade.

Features
- generated ids and policy paths
- pre-existing objects for the lookup tasks (:meth:`add_existing`)
- SNAT address realization from an IP pool's ``cidr`` attribute
- a Manager logical switch realized for every Policy segment
- delete protection for objects that are still referenced
- fault injection and a call journal
- JSON snapshots so a lab backend survives process restarts
"""

from __future__ import annotations

import copy
import ipaddress
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from . import client as kinds
from .client import RemoteObject, tags_to_mapping
from .config import Tag
from .errors import NotFoundError, RemoteAPIError

LOG = logging.getLogger(__name__)

POLICY = "policy"
MANAGER = "manager"

_POLICY_PATHS = {
    kinds.TIER0: "/infra/tier-0s",
    kinds.TRANSPORT_ZONE: "/infra/sites/default/enforcement-points/default/transport-zones",
    kinds.EDGE_CLUSTER: "/infra/sites/default/enforcement-points/default/edge-clusters",
    kinds.IP_POOL: "/infra/ip-pools",
    kinds.TIER1: "/infra/tier-1s",
    kinds.SEGMENT: "/infra/segments",
}

_CHILD_PATHS = {
    kinds.LOCALE_SERVICES: "locale-services",
    kinds.IP_ALLOCATION: "ip-allocations",
    kinds.NAT_RULE: "nat/USER/nat-rules",
}

REALIZED_FROM = "realized_from"


class InMemoryControlPlane:
    """Object store shared by :attr:`policy` and :attr:`manager`."""

    def __init__(self) -> None:
        self._objects: Dict[str, RemoteObject] = {}
        self._api: Dict[str, str] = {}
        self._counter = 0
        self._faults: Dict[Tuple[str, str], Optional[int]] = {}
        self.calls: List[Tuple[str, str, str]] = []
        self.policy = _PolicyFacade(self)
        self.manager = _ManagerFacade(self)

    # ------------------------------------------------------------------
    # Test / lab helpers
    # ------------------------------------------------------------------
    def add_existing(
        self,
        kind: str,
        display_name: str,
        attributes: Optional[Mapping[str, Any]] = None,
        tags: Optional[Mapping[str, str]] = None,
        api: str = POLICY,
    ) -> RemoteObject:
        """Seed an object that exists independently of the ensurer."""

        return self._store(api, kind, display_name, None, dict(tags or {}), attributes)

    def fail_on(self, operation: str, kind: str, times: Optional[int] = None) -> None:
        """Make ``operation`` on ``kind`` fail ``times`` times (forever if None)."""

        self._faults[(operation, kind)] = times

    def clear_faults(self) -> None:
        self._faults.clear()

    def objects(self, kind: Optional[str] = None) -> List[RemoteObject]:
        return [
            copy.deepcopy(obj)
            for obj in self._objects.values()
            if kind is None or obj.kind == kind
        ]

    def count_calls(self, operation: str, kind: Optional[str] = None) -> int:
        return sum(
            1
            for _, op, k in self.calls
            if op == operation and (kind is None or k == kind)
        )

    def remove(self, object_id: str) -> None:
        """Drop an object behind the ensurer's back (simulates out-of-band delete)."""

        self._objects.pop(object_id, None)
        self._api.pop(object_id, None)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------
    def save(self, path: Path) -> None:
        payload = {
            "counter": self._counter,
            "objects": [
                {
                    "api": self._api[obj.id],
                    "id": obj.id,
                    "kind": obj.kind,
                    "display_name": obj.display_name,
                    "path": obj.path,
                    "parent_path": obj.parent_path,
                    "tags": obj.tags,
                    "attributes": obj.attributes,
                }
                for obj in self._objects.values()
            ],
        }
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(payload, indent=2, sort_keys=True))

    @classmethod
    def load(cls, path: Path) -> "InMemoryControlPlane":
        plane = cls()
        if not path.exists():
            LOG.debug("control plane snapshot %s does not exist yet", path)
            return plane
        payload = json.loads(path.read_text())
        plane._counter = int(payload.get("counter", 0))
        for entry in payload.get("objects", []):
            obj = RemoteObject(
                id=entry["id"],
                kind=entry["kind"],
                display_name=entry["display_name"],
                path=entry.get("path"),
                parent_path=entry.get("parent_path"),
                tags=dict(entry.get("tags", {})),
                attributes=dict(entry.get("attributes", {})),
            )
            plane._objects[obj.id] = obj
            plane._api[obj.id] = entry.get("api", POLICY)
        return plane

    # ------------------------------------------------------------------
    # Shared implementation
    # ------------------------------------------------------------------
    def _record(self, api: str, operation: str, kind: str) -> None:
        self.calls.append((api, operation, kind))
        key = (operation, kind)
        if key not in self._faults:
            return
        remaining = self._faults[key]
        if remaining is not None:
            if remaining <= 1:
                del self._faults[key]
            else:
                self._faults[key] = remaining - 1
        raise RemoteAPIError(f"injected failure on {operation} {kind}")

    def _next_id(self, kind: str) -> str:
        self._counter += 1
        return f"{kind.lower()}-{self._counter}"

    def _policy_path(self, kind: str, object_id: str, parent_path: Optional[str]) -> str:
        if kind in _CHILD_PATHS:
            if not parent_path:
                raise RemoteAPIError(f"{kind} requires a parent path")
            return f"{parent_path}/{_CHILD_PATHS[kind]}/{object_id}"
        base = _POLICY_PATHS.get(kind, f"/infra/{kind.lower()}s")
        return f"{base}/{object_id}"

    def _store(
        self,
        api: str,
        kind: str,
        display_name: str,
        parent_path: Optional[str],
        tags: Dict[str, str],
        attributes: Optional[Mapping[str, Any]],
    ) -> RemoteObject:
        object_id = self._next_id(kind)
        path = None
        if api == POLICY:
            if parent_path and not self._find_by_path(parent_path):
                raise RemoteAPIError(f"parent {parent_path} does not exist")
            path = self._policy_path(kind, object_id, parent_path)
        obj = RemoteObject(
            id=object_id,
            kind=kind,
            display_name=display_name,
            path=path,
            parent_path=parent_path,
            tags=tags,
            attributes=dict(attributes or {}),
        )
        self._objects[object_id] = obj
        self._api[object_id] = api
        return obj

    def _find_by_path(self, path: str) -> Optional[RemoteObject]:
        return next((o for o in self._objects.values() if o.path == path), None)

    def _get(self, api: str, kind: str, object_id: str) -> RemoteObject:
        obj = self._objects.get(object_id)
        if obj is None or obj.kind != kind or self._api[object_id] != api:
            raise NotFoundError(f"{kind} {object_id} not found")
        return obj

    def _list(self, api: str, kind: str) -> List[RemoteObject]:
        return [
            obj
            for obj in self._objects.values()
            if obj.kind == kind and self._api[obj.id] == api
        ]

    def _create(
        self,
        api: str,
        kind: str,
        display_name: str,
        parent_path: Optional[str],
        tags: Dict[str, str],
        attributes: Optional[Mapping[str, Any]],
    ) -> RemoteObject:
        self._record(api, "create", kind)
        obj = self._store(api, kind, display_name, parent_path, tags, attributes)
        if kind == kinds.IP_ALLOCATION:
            try:
                obj.attributes["allocation_ip"] = self._allocate_address(obj)
            except RemoteAPIError:
                self.remove(obj.id)
                raise
        elif kind == kinds.SEGMENT:
            self._store(
                MANAGER,
                kinds.LOGICAL_SWITCH,
                display_name,
                None,
                dict(tags),
                {"segment_path": obj.path, REALIZED_FROM: obj.id},
            )
        LOG.debug("created %s %s (%s)", kind, obj.id, display_name)
        return copy.deepcopy(obj)

    def _update(
        self,
        api: str,
        kind: str,
        object_id: str,
        display_name: str,
        tags: Dict[str, str],
        attributes: Optional[Mapping[str, Any]],
    ) -> RemoteObject:
        self._record(api, "update", kind)
        obj = self._get(api, kind, object_id)
        obj.display_name = display_name
        obj.tags = tags
        preserved = {
            k: v for k, v in obj.attributes.items() if k in ("allocation_ip", REALIZED_FROM)
        }
        obj.attributes = {**dict(attributes or {}), **preserved}
        return copy.deepcopy(obj)

    def _delete(self, api: str, kind: str, object_id: str) -> None:
        self._record(api, "delete", kind)
        obj = self._get(api, kind, object_id)
        doomed = [obj] + [
            o for o in self._objects.values() if o.attributes.get(REALIZED_FROM) == obj.id
        ]
        doomed_ids = {o.id for o in doomed}
        for target in doomed:
            for other in self._objects.values():
                if other.id in doomed_ids:
                    continue
                if _references(other, target):
                    raise RemoteAPIError(
                        f"{kind} {object_id} is still in use by {other.kind} {other.id}"
                    )
        for target in doomed:
            self.remove(target.id)
        LOG.debug("deleted %s %s", kind, object_id)

    def _allocate_address(self, allocation: RemoteObject) -> str:
        pool = self._find_by_path(allocation.parent_path or "")
        if pool is None or "cidr" not in pool.attributes:
            raise RemoteAPIError(f"ip pool {allocation.parent_path} has no cidr")
        taken = {
            o.attributes.get("allocation_ip")
            for o in self._objects.values()
            if o.kind == kinds.IP_ALLOCATION and o.parent_path == pool.path
        }
        for host in ipaddress.ip_network(pool.attributes["cidr"]).hosts():
            if str(host) not in taken:
                return str(host)
        raise RemoteAPIError(f"ip pool {pool.display_name} exhausted")


def _references(other: RemoteObject, target: RemoteObject) -> bool:
    if target.path and other.parent_path == target.path:
        return True
    keys = {target.id, target.path} - {None}
    for key, value in other.attributes.items():
        if key == REALIZED_FROM:
            continue
        if isinstance(value, list):
            if keys.intersection(str(v) for v in value):
                return True
        elif isinstance(value, str) and value in keys:
            return True
    return False


class _PolicyFacade:
    """:class:`~nsxt_infra.client.PolicyClient` view of the store."""

    def __init__(self, plane: InMemoryControlPlane) -> None:
        self._plane = plane

    def get(self, kind: str, object_id: str) -> RemoteObject:
        self._plane._record(POLICY, "get", kind)
        return copy.deepcopy(self._plane._get(POLICY, kind, object_id))

    def list(self, kind: str, parent_path: Optional[str] = None) -> List[RemoteObject]:
        self._plane._record(POLICY, "list", kind)
        return [
            copy.deepcopy(obj)
            for obj in self._plane._list(POLICY, kind)
            if parent_path is None or obj.parent_path == parent_path
        ]

    def create(
        self,
        kind: str,
        display_name: str,
        parent_path: Optional[str] = None,
        tags: Sequence[Tag] = (),
        attributes: Optional[Mapping[str, Any]] = None,
    ) -> RemoteObject:
        return self._plane._create(
            POLICY, kind, display_name, parent_path, tags_to_mapping(tags), attributes
        )

    def update(
        self,
        kind: str,
        object_id: str,
        display_name: str,
        tags: Sequence[Tag] = (),
        attributes: Optional[Mapping[str, Any]] = None,
    ) -> RemoteObject:
        return self._plane._update(
            POLICY, kind, object_id, display_name, tags_to_mapping(tags), attributes
        )

    def delete(self, kind: str, object_id: str) -> None:
        self._plane._delete(POLICY, kind, object_id)


class _ManagerFacade:
    """:class:`~nsxt_infra.client.ManagerClient` view of the store."""

    def __init__(self, plane: InMemoryControlPlane) -> None:
        self._plane = plane

    def get(self, kind: str, object_id: str) -> RemoteObject:
        self._plane._record(MANAGER, "get", kind)
        return copy.deepcopy(self._plane._get(MANAGER, kind, object_id))

    def list(self, kind: str) -> List[RemoteObject]:
        self._plane._record(MANAGER, "list", kind)
        return [copy.deepcopy(obj) for obj in self._plane._list(MANAGER, kind)]

    def search(self, kind: str, tags: Mapping[str, str]) -> List[RemoteObject]:
        self._plane._record(MANAGER, "search", kind)
        return [
            copy.deepcopy(obj)
            for obj in self._plane._list(MANAGER, kind)
            if obj.has_tags(tags)
        ]

    def create(
        self,
        kind: str,
        display_name: str,
        tags: Optional[Mapping[str, str]] = None,
        attributes: Optional[Mapping[str, Any]] = None,
    ) -> RemoteObject:
        return self._plane._create(
            MANAGER, kind, display_name, None, dict(tags or {}), attributes
        )

    def update(
        self,
        kind: str,
        object_id: str,
        display_name: str,
        tags: Optional[Mapping[str, str]] = None,
        attributes: Optional[Mapping[str, Any]] = None,
    ) -> RemoteObject:
        return self._plane._update(
            MANAGER, kind, object_id, display_name, dict(tags or {}), attributes
        )

    def delete(self, kind: str, object_id: str) -> None:
        self._plane._delete(MANAGER, kind, object_id)
