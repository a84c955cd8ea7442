"""JSON persistence of :class:`~nsxt_infra.config.InfraState`."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

from nsxt_infra.config import InfraState

LOG = logging.getLogger(__name__)


class StateStore:
    """Load and atomically save the state of one cluster."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> InfraState:
        if not self._path.exists():
            LOG.debug("state file %s does not exist yet", self._path)
            return InfraState()
        payload = json.loads(self._path.read_text())
        if not isinstance(payload, dict):
            raise ValueError(f"state file {self._path} must contain a mapping")
        return InfraState.from_dict(payload)

    def save(self, state: InfraState) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=str(self._path.parent), prefix=f".{self._path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w") as fh:
                json.dump(state.to_dict(), fh, indent=2, sort_keys=True)
            os.replace(tmp_name, self._path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        LOG.debug("saved state to %s", self._path)
