"""Watcher implementations used by the agent."""

from .file import SpecFileWatcher  # noqa: F401

__all__ = ["SpecFileWatcher"]
