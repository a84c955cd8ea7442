"""Infrastructure ensurer.

Drives an ordered list of tasks against the control plane.  Reconcile walks
the list forward and stops at the first failing task; delete walks it
backwards, optionally after a forward recovery pass.  No rollback and no
retry happen here: every task is idempotent, so the caller simply invokes the
ensurer again with the persisted state and the run resumes where the last one
stopped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence, Union

from .client import ManagerClient, PolicyClient
from .config import InfraSpec, InfraState
from .errors import InfraError, TaskFailedError
from .tasks import Action, Task, default_tasks

LOG = logging.getLogger(__name__)

Logger = Union[logging.Logger, logging.LoggerAdapter]


@dataclass(frozen=True)
class EnsurerContext:
    """Capabilities handed to every task call.

    Built by the ensurer for each run; tasks must not keep it beyond the call.
    """

    logger: Logger
    policy: PolicyClient
    manager: ManagerClient
    try_recover_enabled: bool = True


class NSXTInfraEnsurer:
    """Reconcile and delete the cluster network topology."""

    def __init__(
        self,
        policy: PolicyClient,
        manager: ManagerClient,
        tasks: Optional[Sequence[Task]] = None,
        logger: Optional[Logger] = None,
        try_recover_enabled: bool = True,
    ) -> None:
        self._policy = policy
        self._manager = manager
        self._tasks = list(tasks) if tasks is not None else default_tasks()
        self._logger = logger or LOG
        self._try_recover_enabled = try_recover_enabled

    @property
    def tasks(self) -> Sequence[Task]:
        return tuple(self._tasks)

    def new_context(self) -> EnsurerContext:
        return EnsurerContext(
            logger=self._logger,
            policy=self._policy,
            manager=self._manager,
            try_recover_enabled=self._try_recover_enabled,
        )

    # ------------------------------------------------------------------
    # Reconcile
    # ------------------------------------------------------------------
    def ensure_infrastructure(self, spec: InfraSpec, state: InfraState) -> None:
        """Create or verify every object of the topology, in order.

        Raises :class:`TaskFailedError` for the first task that fails; tasks
        before it stay ensured and their references stay in ``state``.
        """

        ctx = self.new_context()
        for task in self._tasks:
            try:
                self._try_recover(ctx, spec, state, task, lookup=False)
            except Exception as exc:  # recovery is best effort
                ctx.logger.warning("%s: try recover failed: %s", task.label, exc)

            try:
                action = task.ensure(ctx, spec, state)
            except InfraError as exc:
                raise TaskFailedError(task.label, "ensure", exc) from exc
            self._log_action(ctx, spec, state, task, action)

    def _try_recover(
        self,
        ctx: EnsurerContext,
        spec: InfraSpec,
        state: InfraState,
        task: Task,
        lookup: bool,
    ) -> bool:
        """Restore a reference lost from ``state`` by searching the control plane.

        With ``lookup`` set, lookup tasks are ensured as well so the parents
        needed by later recoveries are known.
        """

        if not ctx.try_recover_enabled or task.reference(state) is not None:
            return False
        if task.supports_recovery:
            return task.recovery.recover(ctx, spec, state, task)
        if lookup and task.lookup:
            task.ensure(ctx, spec, state)
            return True
        return False

    def _log_action(
        self,
        ctx: EnsurerContext,
        spec: InfraSpec,
        state: InfraState,
        task: Task,
        action: Action,
    ) -> None:
        name = task.name_to_log(spec)
        ref = task.reference(state)
        fields = ""
        if name is not None:
            fields += f" name={name}"
        if ref is not None:
            fields += f" id={ref.id}"
        ctx.logger.info(
            "%s %s%s",
            task.label,
            action,
            fields,
            extra={
                "task_label": task.label,
                "resource_name": name,
                "resource_id": ref.id if ref else None,
            },
        )

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------
    def ensure_infrastructure_deleted(
        self, spec: Optional[InfraSpec], state: InfraState
    ) -> None:
        """Delete every object of the topology, last created first.

        With a ``spec``, references lost from ``state`` are recovered first so
        orphans are deleted too.  That pass is best effort: its failures are
        logged and ignored.  Without a ``spec`` only what ``state`` knows about
        is deleted.
        """

        ctx = self.new_context()
        if spec is not None:
            # recovery needs the creation order
            for task in self._tasks:
                try:
                    self._try_recover(ctx, spec, state, task, lookup=True)
                except Exception as exc:  # recovery is best effort
                    ctx.logger.info(
                        "try recover failed for %s name=%s: %s",
                        task.label,
                        task.name_to_log(spec),
                        exc,
                    )

        for task in reversed(self._tasks):
            try:
                deleted = task.ensure_deleted(ctx, state)
            except InfraError as exc:
                raise TaskFailedError(task.label, "delete", exc) from exc
            if deleted:
                ctx.logger.info("%s deleted", task.label, extra={"task_label": task.label})
