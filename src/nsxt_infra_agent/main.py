"""Entry point for the standalone NSX-T infrastructure agent."""

from __future__ import annotations

import argparse
import logging
import signal
import sys
from pathlib import Path
from threading import Event

from nsxt_infra.errors import InfraError

from .backend import build_backend
from .config import AgentConfig, load_config
from .config_opts import apply_conf_overrides, load_service_config
from .events import InfraDelete, InfraUpsert
from .handlers import build_ensurer_handler
from .registry import HandlerRegistry
from .state_store import StateStore
from .watchers import SpecFileWatcher

LOG = logging.getLogger(__name__)


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Reconcile NSX-T cluster infrastructure")
    parser.add_argument(
        "--config",
        type=Path,
        default=Path("/etc/nsxt-infra/agent.yaml"),
        help="Path to the agent configuration file",
    )
    parser.add_argument(
        "--service-config",
        type=Path,
        default=None,
        help="Optional ini file with [nsxt_infra] overrides",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    commands = parser.add_subparsers(dest="command", required=True)
    commands.add_parser("reconcile", help="Create or repair the infrastructure once")
    delete = commands.add_parser("delete", help="Delete the infrastructure")
    delete.add_argument(
        "--no-recover",
        action="store_true",
        help="Only delete what the state file references",
    )
    commands.add_parser("watch", help="Run the configured watchers until signalled")
    return parser


def _load(args: argparse.Namespace) -> AgentConfig:
    config = load_config(args.config)
    if args.service_config is not None:
        config = apply_conf_overrides(config, load_service_config(args.service_config))
    return config


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    _setup_logging(args.verbose)

    config = _load(args)
    backend = build_backend(config.backend)
    registry = HandlerRegistry()
    registry.register(
        "nsxt",
        build_ensurer_handler(
            backend, StateStore(config.state_path), try_recover=config.try_recover
        ),
    )

    if args.command == "watch":
        return _watch(config, registry)

    if config.infrastructure is None and not (args.command == "delete" and args.no_recover):
        LOG.error("configuration has no 'infrastructure' section")
        return 2

    try:
        if args.command == "reconcile":
            registry.handle(InfraUpsert(config.infrastructure))
        else:
            spec = None if args.no_recover else config.infrastructure
            registry.handle(InfraDelete(spec))
    except InfraError as exc:
        LOG.error("%s failed: %s", args.command, exc)
        return 1
    return 0


def _watch(config: AgentConfig, registry: HandlerRegistry) -> int:
    stop_event = Event()

    watchers = []
    for watcher_cfg in config.watchers:
        if watcher_cfg.type != "file":
            raise ValueError(f"unsupported watcher type '{watcher_cfg.type}'")
        watcher = SpecFileWatcher(
            registry=registry,
            path=watcher_cfg.path,
            interval=watcher_cfg.interval,
            stop_event=stop_event,
            max_backoff=watcher_cfg.max_backoff,
        )
        watcher.start()
        watchers.append(watcher)

    if not watchers:
        LOG.warning("no watchers configured; agent will idle")

    def _shutdown(signum, frame):  # pragma: no cover - signal handler
        LOG.info("received signal %s, shutting down", signum)
        stop_event.set()

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)

    try:
        while not stop_event.is_set():
            stop_event.wait(1.0)
    except KeyboardInterrupt:  # pragma: no cover - fallback if signal not set
        stop_event.set()

    for watcher in watchers:
        watcher.join()

    LOG.info("nsxt-infra agent stopped")
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
