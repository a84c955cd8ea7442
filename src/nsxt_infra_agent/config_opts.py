"""oslo.config options for services embedding the ensurer.

A host service registers these options next to its own and hands its
``ConfigOpts`` to :func:`apply_conf_overrides`.  The standalone agent reads
the same options from an optional ini file (``--service-config``) and lets
them override the runtime knobs of the YAML configuration.  Every option
defaults to ``None`` meaning "keep the YAML value".
"""

from __future__ import annotations

import dataclasses
from pathlib import Path
from typing import List, Optional, Tuple

from oslo_config import cfg

from .config import AgentConfig, WatcherConfig

GROUP = "nsxt_infra"

nsxt_infra_opts = [
    cfg.StrOpt('state_path',
               default=None,
               help='JSON file holding the persisted infrastructure state.'),
    cfg.StrOpt('backend_path',
               default=None,
               help='Snapshot file of the in-memory lab control plane.'),
    cfg.BoolOpt('try_recover',
                default=None,
                help='Search lost references by tags before creating objects.'),
    cfg.FloatOpt('reconcile_interval',
                 default=None,
                 min=0.1,
                 help='Seconds between two reconcile runs of the spec watcher.'),
    cfg.FloatOpt('max_backoff',
                 default=None,
                 min=0.1,
                 help='Upper bound in seconds for the watcher retry delay.'),
]


def register_opts(conf: Optional[cfg.ConfigOpts] = None) -> cfg.ConfigOpts:
    """Register the options in the ``[nsxt_infra]`` group of ``conf``."""

    conf = conf if conf is not None else cfg.CONF
    conf.register_opts(nsxt_infra_opts, group=GROUP)
    return conf


def list_opts() -> List[Tuple[str, list]]:
    """Entry point for ``oslo-config-generator``."""

    return [(GROUP, nsxt_infra_opts)]


def load_service_config(path: Path) -> cfg.ConfigOpts:
    """Parse an ini file into a private ``ConfigOpts``."""

    conf = cfg.ConfigOpts()
    register_opts(conf)
    conf(args=[], default_config_files=[str(path)])
    return conf


def apply_conf_overrides(config: AgentConfig, conf: cfg.ConfigOpts) -> AgentConfig:
    """Return a copy of ``config`` with every option set in ``conf`` applied."""

    group = getattr(conf, GROUP)
    updates = {}
    if group.state_path is not None:
        updates["state_path"] = Path(group.state_path)
    if group.try_recover is not None:
        updates["try_recover"] = group.try_recover
    if group.backend_path is not None:
        updates["backend"] = dataclasses.replace(
            config.backend, path=Path(group.backend_path)
        )
    if group.reconcile_interval is not None or group.max_backoff is not None:
        updates["watchers"] = [_override_watcher(w, group) for w in config.watchers]
    return dataclasses.replace(config, **updates)


def _override_watcher(watcher: WatcherConfig, group) -> WatcherConfig:
    interval = group.reconcile_interval
    max_backoff = group.max_backoff
    return dataclasses.replace(
        watcher,
        interval=interval if interval is not None else watcher.interval,
        max_backoff=max_backoff if max_backoff is not None else watcher.max_backoff,
    )
