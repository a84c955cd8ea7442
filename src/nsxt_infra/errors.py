"""Error taxonomy shared by tasks and the orchestrator."""

from __future__ import annotations


class InfraError(Exception):
    """Base class for all ensurer exceptions."""


class RemoteAPIError(InfraError):
    """Raised when a call into the remote control plane fails."""


class NotFoundError(RemoteAPIError):
    """Raised when the remote object does not exist (anymore)."""


class ConsistencyError(InfraError):
    """Raised when a stored reference no longer resolves remotely.

    The task has already dropped the stale reference from the state, so the
    next reconcile recovers or re-creates the object.
    """


class LookupFailedError(InfraError):
    """Raised when a pre-existing object cannot be resolved unambiguously."""


class TaskFailedError(InfraError):
    """Wraps the failure of a single task with its label."""

    def __init__(self, label: str, phase: str, cause: Exception) -> None:
        if phase == "delete":
            message = f"deleting {label} failed: {cause}"
        else:
            message = f"{label} failed: {cause}"
        super().__init__(message)
        self.label = label
        self.phase = phase
        self.cause = cause


class DependencyError(InfraError):
    """Raised when a task runs before the reference it builds on is known."""
