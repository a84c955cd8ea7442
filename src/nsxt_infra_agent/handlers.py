"""Handlers turning infrastructure events into ensurer runs."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Optional

from nsxt_infra.config import InfraSpec
from nsxt_infra.ensurer import NSXTInfraEnsurer

from .backend import Backend
from .state_store import StateStore

LOG = logging.getLogger(__name__)


class InfraHandler(ABC):
    """Base class for handlers managed by :class:`HandlerRegistry`."""

    @abstractmethod
    def on_upsert(self, spec: InfraSpec) -> None:
        """Reconcile the topology described by ``spec``."""

    @abstractmethod
    def on_delete(self, spec: Optional[InfraSpec]) -> None:
        """Remove the topology, recovering lost references when ``spec`` is given."""


class EnsurerHandler(InfraHandler):
    """Run :class:`~nsxt_infra.ensurer.NSXTInfraEnsurer` against persisted state.

    The state is saved after every run, failed runs included, so the next run
    resumes from the partial progress.
    """

    def __init__(
        self,
        ensurer: NSXTInfraEnsurer,
        store: StateStore,
        backend: Optional[Backend] = None,
    ) -> None:
        self._ensurer = ensurer
        self._store = store
        self._backend = backend

    @property
    def ensurer(self) -> NSXTInfraEnsurer:
        return self._ensurer

    def on_upsert(self, spec: InfraSpec) -> None:
        state = self._store.load()
        try:
            self._ensurer.ensure_infrastructure(spec, state)
        finally:
            self._persist(state)
        LOG.info("infrastructure for %s is ready", spec.full_cluster_name)

    def on_delete(self, spec: Optional[InfraSpec]) -> None:
        state = self._store.load()
        try:
            self._ensurer.ensure_infrastructure_deleted(spec, state)
        finally:
            self._persist(state)
        LOG.info("infrastructure deleted")

    def _persist(self, state) -> None:
        self._store.save(state)
        if self._backend is not None:
            self._backend.flush()


def build_ensurer_handler(
    backend: Backend,
    store: StateStore,
    *,
    try_recover: bool = True,
) -> EnsurerHandler:
    """Helper wiring an ensurer for ``backend``."""

    ensurer = NSXTInfraEnsurer(
        backend.policy,
        backend.manager,
        try_recover_enabled=try_recover,
    )
    return EnsurerHandler(ensurer, store, backend=backend)
