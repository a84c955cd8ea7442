"""Fan infrastructure events out to the handlers of one agent."""

from __future__ import annotations

from typing import Dict

from .events import InfraDelete, InfraUpsert
from .handlers import InfraHandler


class HandlerRegistry:
    """Name-keyed set of :class:`InfraHandler` instances.

    Handlers see every event in registration order.  Dispatch is synchronous
    and stops at the first handler that raises: the exception reaches the
    publisher (the CLI or a watcher), which decides whether to retry.  Later
    handlers are not called for that event.
    """

    def __init__(self) -> None:
        self._handlers: Dict[str, InfraHandler] = {}

    def register(self, name: str, handler: InfraHandler) -> None:
        if name in self._handlers:
            raise ValueError(f"handler '{name}' already registered")
        self._handlers[name] = handler

    def unregister(self, name: str) -> None:
        self._handlers.pop(name, None)

    def handle(self, event: InfraUpsert | InfraDelete) -> None:
        if isinstance(event, InfraUpsert):
            for handler in self._handlers.values():
                handler.on_upsert(event.spec)
        elif isinstance(event, InfraDelete):
            for handler in self._handlers.values():
                handler.on_delete(event.spec)
        else:
            raise TypeError(f"unsupported event {type(event).__name__}")
