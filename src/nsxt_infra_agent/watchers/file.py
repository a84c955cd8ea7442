"""File-based spec watcher."""

from __future__ import annotations

import logging
from pathlib import Path
from threading import Event, Thread
from typing import Optional

import yaml

from nsxt_infra.config import InfraSpec

from ..config import load_spec
from ..events import InfraDelete, InfraUpsert
from ..registry import HandlerRegistry

LOG = logging.getLogger(__name__)

MAX_BACKOFF_EXPONENT = 32


class SpecFileWatcher(Thread):
    """Poll a YAML spec file and publish infrastructure events.

    Every cycle publishes :class:`InfraUpsert` while the file exists, so drift
    on the control plane is repaired.  Once a file that was seen disappears,
    :class:`InfraDelete` is published until the deletion succeeds.  Failed
    cycles are retried with exponential backoff capped at ``max_backoff``.
    """

    def __init__(
        self,
        registry: HandlerRegistry,
        path: Path,
        interval: float,
        stop_event: Event,
        max_backoff: Optional[float] = None,
    ) -> None:
        super().__init__(daemon=True)
        self._registry = registry
        self._path = Path(path)
        self._interval = interval
        self._max_backoff = max(max_backoff or interval, interval)
        self._stop_event = stop_event
        self._last_spec: Optional[InfraSpec] = None
        self._failures = 0

    @property
    def failures(self) -> int:
        return self._failures

    def next_delay(self) -> float:
        if self._failures == 0:
            return self._interval
        exponent = min(self._failures, MAX_BACKOFF_EXPONENT)
        return min(self._interval * (2 ** exponent), self._max_backoff)

    def run(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.poll()
            except Exception:  # pragma: no cover - logged
                self._failures += 1
                LOG.exception(
                    "spec watcher cycle failed, retrying in %.1fs", self.next_delay()
                )
            else:
                self._failures = 0
            self._stop_event.wait(self.next_delay())

    def poll(self) -> None:
        if not self._path.exists():
            if self._last_spec is None:
                LOG.debug("spec file %s does not exist yet", self._path)
                return
            LOG.info("spec file %s removed, deleting infrastructure", self._path)
            self._registry.handle(InfraDelete(self._last_spec))
            self._last_spec = None
            return

        try:
            spec = load_spec(self._path)
        except (yaml.YAMLError, ValueError, KeyError) as exc:
            LOG.warning("invalid spec file %s: %s", self._path, exc)
            return

        if spec != self._last_spec:
            LOG.debug("spec for %s changed", spec.full_cluster_name)
        self._last_spec = spec
        self._registry.handle(InfraUpsert(spec))
