"""Instance Store - session-wide source of truth for the instance collection.

## Ordering policy (optimistic updates vs. in-flight loads)

Every local mutation (apply_status, upsert, remove) bumps a store revision
and stamps the touched instance with it. A load() takes the next load
sequence number and captures the revision when its request starts:

- instances touched after that point keep their local state when the
  response arrives (a stale list cannot undo a newer optimistic update or
  resurrect a locally removed instance)
- instances touched before that point are replaced by server truth
- a response whose sequence number is below that of an already-applied
  load is discarded entirely

Failed loads leave the previous list in place (stale-but-available).
"""

import asyncio
import logging
from datetime import UTC, datetime

from dbconsole.app.config import get_settings
from dbconsole.app.metrics.collector import STORE_INSTANCES, STORE_LOADS_TOTAL
from dbconsole.core.domain import InstanceStatus
from dbconsole.core.errors import ConsoleError, FetchError, InstanceNotFoundError
from dbconsole.core.interfaces import ControlPlane, Notifier
from dbconsole.core.logging_schema import Component, LogEvent
from dbconsole.core.models import Instance, Outcome
from dbconsole.core.retryable import with_retry

logger = logging.getLogger(__name__)

_store_config = get_settings().store


class InstanceStore:
    """Last-known-good instance list for one console session.

    Only this class mutates the collection. Other components go through
    apply_status / upsert / remove / load.
    """

    def __init__(
        self,
        control_plane: ControlPlane,
        notifier: Notifier | None = None,
        *,
        max_retries: int = _store_config.load_max_retries,
        retry_base_delay: float = _store_config.retry_base_delay,
        retry_max_delay: float = _store_config.retry_max_delay,
    ) -> None:
        self._control_plane = control_plane
        self._notifier = notifier
        self._max_retries = max_retries
        self._retry_base_delay = retry_base_delay
        self._retry_max_delay = retry_max_delay

        self._instances: dict[str, Instance] = {}
        self._revision = 0
        # instance_id -> revision of its last local mutation (removals included)
        self._touched: dict[str, int] = {}
        self._load_seq = 0
        self._applied_load_seq = 0
        self._loaded = False
        self._last_loaded_at: datetime | None = None
        self._last_error: ConsoleError | None = None
        self._refresh_tasks: set[asyncio.Task[Outcome[list[Instance]]]] = set()

    # =========================================================================
    # Read access
    # =========================================================================

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    @property
    def last_loaded_at(self) -> datetime | None:
        return self._last_loaded_at

    @property
    def last_error(self) -> ConsoleError | None:
        """Error of the most recent failed load (None after a success)."""
        return self._last_error

    @property
    def revision(self) -> int:
        return self._revision

    def get(self, instance_id: str) -> Instance:
        """Return the cached instance.

        Raises:
            InstanceNotFoundError: If the instance is not in the store
        """
        instance = self._instances.get(instance_id)
        if instance is None:
            raise InstanceNotFoundError(f"Instance {instance_id} not found")
        return instance

    def contains(self, instance_id: str) -> bool:
        return instance_id in self._instances

    def instances(self) -> list[Instance]:
        """Snapshot of the collection in server order."""
        return list(self._instances.values())

    def __len__(self) -> int:
        return len(self._instances)

    # =========================================================================
    # Resynchronization
    # =========================================================================

    async def load(self) -> list[Instance]:
        """Replace the collection with the control plane's list.

        Returns:
            The collection after the load was applied.

        Raises:
            FetchError: Network failure, timeout or 5xx. The previous list
                        is retained.
        """
        self._load_seq += 1
        seq = self._load_seq
        started_at = self._revision
        try:
            fetched = await with_retry(
                self._control_plane.list_instances,
                max_retries=self._max_retries,
                base_delay=self._retry_base_delay,
                max_delay=self._retry_max_delay,
            )
        except ConsoleError as exc:
            self._last_error = exc
            STORE_LOADS_TOTAL.labels(result="failure").inc()
            logger.warning(
                "Instance list load failed: %s",
                exc.message,
                extra={"event": LogEvent.LOAD_FAILED, "component": Component.STORE},
            )
            if isinstance(exc, FetchError):
                raise
            raise FetchError(exc.message) from exc

        if seq < self._applied_load_seq:
            STORE_LOADS_TOTAL.labels(result="discarded").inc()
            logger.info(
                "Discarding out-of-order load",
                extra={
                    "event": LogEvent.LOAD_DISCARDED,
                    "component": Component.STORE,
                    "load_seq": seq,
                    "applied_seq": self._applied_load_seq,
                },
            )
            return self.instances()

        self._apply_load(fetched, started_at, seq)
        return self.instances()

    def _apply_load(self, fetched: list[Instance], started_at: int, seq: int) -> None:
        merged: dict[str, Instance] = {}
        for instance in fetched:
            if self._touched.get(instance.instance_id, -1) > started_at:
                # Mutated locally while the request was in flight
                local = self._instances.get(instance.instance_id)
                if local is not None:
                    merged[instance.instance_id] = local
                continue
            merged[instance.instance_id] = instance

        # Locally created while the request was in flight
        for instance_id, local in self._instances.items():
            if instance_id not in merged and self._touched.get(instance_id, -1) > started_at:
                merged[instance_id] = local

        self._instances = merged
        self._touched = {
            instance_id: rev
            for instance_id, rev in self._touched.items()
            if rev > started_at
        }
        self._applied_load_seq = seq
        self._loaded = True
        self._last_loaded_at = datetime.now(UTC)
        self._last_error = None
        STORE_INSTANCES.set(len(self._instances))
        STORE_LOADS_TOTAL.labels(result="success").inc()
        logger.info(
            "Loaded %d instances",
            len(merged),
            extra={"event": LogEvent.LOAD_COMPLETE, "component": Component.STORE},
        )

    async def refresh(self) -> Outcome[list[Instance]]:
        """load() for UI callers: failures become a notification."""
        try:
            return Outcome.success(await self.load())
        except FetchError as exc:
            if self._notifier:
                self._notifier.error("Failed to load instances")
            return Outcome.failure(exc)

    def refresh_in_background(self) -> asyncio.Task[Outcome[list[Instance]]]:
        """Schedule refresh() without awaiting it. close() cancels it."""
        task = asyncio.create_task(self.refresh(), name="store-refresh")
        self._refresh_tasks.add(task)
        task.add_done_callback(self._refresh_tasks.discard)
        return task

    async def fetch_instance(self, instance_id: str) -> Instance:
        """Fetch one instance from the control plane and upsert it.

        Raises:
            InstanceNotFoundError: Instance vanished remotely (removed locally)
            FetchError: Control plane unreachable
        """
        try:
            instance = await self._control_plane.get_instance(instance_id)
        except InstanceNotFoundError:
            self.remove(instance_id)
            raise
        self.upsert(instance)
        return instance

    # =========================================================================
    # Local mutation
    # =========================================================================

    def _touch(self, instance_id: str) -> None:
        self._revision += 1
        self._touched[instance_id] = self._revision

    def apply_status(
        self,
        instance_id: str,
        status: InstanceStatus,
        patch: dict | None = None,
    ) -> Instance:
        """Optimistically set `status` (plus any `patch` fields) on an instance.

        Raises:
            InstanceNotFoundError: If the instance is not in the store
        """
        current = self.get(instance_id)
        update = dict(patch or {})
        update["status"] = status
        updated = current.model_copy(update=update)
        self._instances[instance_id] = updated
        self._touch(instance_id)
        if current.status != status:
            logger.info(
                "Status %s -> %s",
                current.status,
                status,
                extra={
                    "event": LogEvent.STATE_CHANGED,
                    "component": Component.STORE,
                    "instance_id": instance_id,
                },
            )
        return updated

    def upsert(self, instance: Instance) -> None:
        self._instances[instance.instance_id] = instance
        self._touch(instance.instance_id)
        STORE_INSTANCES.set(len(self._instances))

    def remove(self, instance_id: str) -> bool:
        """Drop an instance. Returns False if it was not present."""
        removed = self._instances.pop(instance_id, None)
        self._touch(instance_id)
        STORE_INSTANCES.set(len(self._instances))
        if removed is not None:
            logger.info(
                "Removed instance",
                extra={
                    "event": LogEvent.INSTANCE_REMOVED,
                    "component": Component.STORE,
                    "instance_id": instance_id,
                },
            )
        return removed is not None

    async def close(self) -> None:
        """Cancel background refreshes (view teardown)."""
        tasks = list(self._refresh_tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._refresh_tasks.clear()
