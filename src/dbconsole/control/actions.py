"""Action Coordinator - serializes lifecycle actions per instance.

State machine (per instance):

    pending  -> running      start success, only once provisioning completed
    running  -> stopped      stop
    stopped  -> running      start
    running|stopped -> terminating -> (removed)   terminate
    any      -> error        control plane reports an inconsistent state (409)

Guarantee: at most one PendingAction per instance. A second dispatch while
the first is in flight is rejected with ActionInProgressError and issues no
remote call. It is never queued: a queued action would run against an
instance whose state may already have changed.
"""

import asyncio
import logging
import time

from dbconsole.app.logging import operation_context
from dbconsole.app.metrics.collector import (
    LIFECYCLE_ACTIONS_REJECTED_TOTAL,
    LIFECYCLE_ACTIONS_TOTAL,
    PENDING_ACTIONS,
)
from dbconsole.control.store import InstanceStore
from dbconsole.core.domain import SUCCESS_STATUS, ActionKind, InstanceStatus, can_dispatch
from dbconsole.core.errors import (
    ActionInProgressError,
    ConsoleError,
    InstanceNotFoundError,
    InvalidTransitionError,
    StateConflictError,
)
from dbconsole.core.interfaces import ControlPlane, Navigator, Notifier
from dbconsole.core.logging_schema import Component, ErrorClass, LogEvent
from dbconsole.core.models import Instance, Outcome, PendingAction
from dbconsole.core.retryable import is_retryable

logger = logging.getLogger(__name__)

_SUCCESS_MESSAGES = {
    ActionKind.START: "Instance started successfully",
    ActionKind.STOP: "Instance stopped successfully",
    ActionKind.TERMINATE: "Instance terminated successfully",
}


class ActionCoordinator:
    """Dispatches start/stop/terminate with a per-instance in-flight guard.

    Terminate confirmation is the caller's job; dispatch() assumes the user
    already confirmed.
    """

    def __init__(
        self,
        store: InstanceStore,
        control_plane: ControlPlane,
        notifier: Notifier | None = None,
        navigator: Navigator | None = None,
    ) -> None:
        self._store = store
        self._control_plane = control_plane
        self._notifier = notifier
        self._navigator = navigator
        self._pending: dict[str, PendingAction] = {}
        self._reconciles: set[asyncio.Task] = set()

    def pending_action(self, instance_id: str) -> PendingAction | None:
        return self._pending.get(instance_id)

    def is_busy(self, instance_id: str) -> bool:
        """True while an action is in flight (UI disables the controls)."""
        return instance_id in self._pending

    def pending_actions(self) -> list[PendingAction]:
        return list(self._pending.values())

    async def dispatch(
        self, instance_id: str, kind: ActionKind | str
    ) -> Outcome[Instance | None]:
        """Run one lifecycle action against an instance.

        Returns:
            Outcome with the optimistically updated instance (None after
            terminate), or the error that stopped it:
            ActionInProgressError, InstanceNotFoundError,
            InvalidTransitionError, or the remote failure.
        """
        kind = ActionKind(kind)
        with operation_context(instance_id, kind.value):
            return await self._dispatch(instance_id, kind)

    async def _dispatch(
        self, instance_id: str, kind: ActionKind
    ) -> Outcome[Instance | None]:
        if instance_id in self._pending:
            return self._reject(
                instance_id,
                kind,
                ActionInProgressError(
                    f"{self._pending[instance_id].kind.value} already in progress"
                ),
                notify=False,
            )

        try:
            instance = self._store.get(instance_id)
        except InstanceNotFoundError as exc:
            return self._reject(instance_id, kind, exc)

        if not can_dispatch(kind, instance.status):
            return self._reject(
                instance_id,
                kind,
                InvalidTransitionError(
                    f"Cannot {kind.value} an instance that is {instance.status.value}"
                ),
            )

        # No await between the guard check and this line
        self._pending[instance_id] = PendingAction(instance_id=instance_id, kind=kind)
        PENDING_ACTIONS.set(len(self._pending))
        started = time.monotonic()
        logger.info(
            "Dispatching %s",
            kind.value,
            extra={
                "event": LogEvent.ACTION_STARTED,
                "component": Component.ACTIONS,
                "instance_id": instance_id,
                "from_status": instance.status.value,
            },
        )

        try:
            await self._call(kind, instance_id)
            updated = self._apply_success(instance_id, kind)
        except ConsoleError as exc:
            self._handle_failure(instance_id, kind, exc)
            return Outcome.failure(exc)
        finally:
            self._pending.pop(instance_id, None)
            PENDING_ACTIONS.set(len(self._pending))

        LIFECYCLE_ACTIONS_TOTAL.labels(kind=kind.value, result="success").inc()
        logger.info(
            "%s succeeded",
            kind.value,
            extra={
                "event": LogEvent.ACTION_SUCCESS,
                "component": Component.ACTIONS,
                "instance_id": instance_id,
                "duration_ms": round((time.monotonic() - started) * 1000, 1),
            },
        )
        if self._notifier:
            self._notifier.success(_SUCCESS_MESSAGES[kind])
        if kind == ActionKind.TERMINATE and self._navigator:
            self._navigator.navigate("/instances")
        self._reconcile()
        return Outcome.success(updated)

    async def _call(self, kind: ActionKind, instance_id: str) -> None:
        if kind == ActionKind.START:
            await self._control_plane.start_instance(instance_id)
        elif kind == ActionKind.STOP:
            await self._control_plane.stop_instance(instance_id)
        else:
            await self._control_plane.terminate_instance(instance_id)

    def _apply_success(self, instance_id: str, kind: ActionKind) -> Instance | None:
        status = SUCCESS_STATUS[kind]
        if status is None:
            self._store.remove(instance_id)
            return None
        if not self._store.contains(instance_id):
            # Dropped by a load while the call was in flight
            return None
        return self._store.apply_status(instance_id, status)

    def _handle_failure(
        self, instance_id: str, kind: ActionKind, exc: ConsoleError
    ) -> None:
        LIFECYCLE_ACTIONS_TOTAL.labels(kind=kind.value, result="failure").inc()

        if isinstance(exc, InstanceNotFoundError):
            # Vanished remotely: treat as terminated
            self._store.remove(instance_id)
        elif isinstance(exc, StateConflictError):
            if self._store.contains(instance_id):
                self._store.apply_status(instance_id, InstanceStatus.ERROR)
            self._reconcile()

        logger.warning(
            "Failed to %s instance: %s",
            kind.value,
            exc.message,
            extra={
                "event": LogEvent.ACTION_FAILED,
                "component": Component.ACTIONS,
                "instance_id": instance_id,
                "error_code": exc.code.value,
                "error_class": (
                    ErrorClass.TRANSIENT if is_retryable(exc) else ErrorClass.PERMANENT
                ),
            },
        )
        if self._notifier:
            self._notifier.error(f"Failed to {kind.value} instance")

    def _reject(
        self,
        instance_id: str,
        kind: ActionKind,
        exc: ConsoleError,
        *,
        notify: bool = True,
    ) -> Outcome[Instance | None]:
        LIFECYCLE_ACTIONS_REJECTED_TOTAL.labels(
            kind=kind.value, reason=exc.code.value
        ).inc()
        logger.info(
            "Rejected %s: %s",
            kind.value,
            exc.message,
            extra={
                "event": LogEvent.ACTION_REJECTED,
                "component": Component.ACTIONS,
                "instance_id": instance_id,
                "error_code": exc.code.value,
            },
        )
        if notify and self._notifier:
            self._notifier.error(exc.message)
        return Outcome.failure(exc)

    def _reconcile(self) -> None:
        task = self._store.refresh_in_background()
        self._reconciles.add(task)
        task.add_done_callback(self._reconciles.discard)

    async def close(self) -> None:
        """Cancel reconcile loads scheduled by this coordinator."""
        tasks = list(self._reconciles)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._reconciles.clear()
