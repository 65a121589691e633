"""
Assignment synchronizer for a storage node.

Keeps the authoritative set of stream partitions this node must store by
merging two sources:
- Periodic full-state poll of the registry (source of truth)
- Push events from the registry, resolved by AssignmentEventBridge

Both paths apply their changes inside the same critical section, so
listeners see every effective transition exactly once.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional, Set

import structlog

from logstore.assignment.event_bridge import AssignmentEventBridge
from logstore.assignment.metadata import ChangeType, UnitKey, UnitMetadata
from logstore.assignment.registry import RegistryClient
from logstore.assignment.sharding import ShardingParams, in_shard
from logstore.utils.logging import get_logger

UnitCallback = Callable[[UnitKey], None]


@dataclass
class SynchronizerConfig:
    """
    Configuration for assignment synchronization.

    Attributes:
        node_address: Address of this storage node in the registry
        poll_interval_ms: Delay between the end of one poll and the next
        sharding: Fleet sharding parameters
    """
    node_address: str
    poll_interval_ms: int = 600000
    sharding: ShardingParams = field(default_factory=ShardingParams)

    def __post_init__(self):
        if not self.node_address:
            raise ValueError("node_address is required")

        if self.poll_interval_ms <= 0:
            raise ValueError(f"Invalid poll_interval_ms: {self.poll_interval_ms}")

    @classmethod
    def from_config(cls, config) -> "SynchronizerConfig":
        """
        Build from the node configuration.

        Args:
            config: Config instance

        Returns:
            Synchronizer configuration
        """
        return cls(
            node_address=config.get("node.address"),
            poll_interval_ms=config.get("assignment.poll_interval_ms", 600000),
            sharding=ShardingParams(
                shard_count=config.get("assignment.shard_count", 1),
                shard_index=config.get("assignment.shard_index", 0),
            ),
        )


class AssignmentSynchronizer:
    """
    Maintains the set of units assigned to this storage node.

    Lifecycle:
    - Before start(): the set is empty, nothing is polled or subscribed
    - start(): subscribes to registry events and polls immediately, then
      every poll_interval_ms after the previous poll finishes
    - destroy(): stops polling and events; once it returns the set is frozen
      and no listener is called again

    Callers must not call start() twice without destroy() in between.

    Listeners are called synchronously inside the critical section and must
    not block; a slow listener stalls reconciliation.
    """

    def __init__(
        self,
        config: SynchronizerConfig,
        registry: RegistryClient,
        on_unit_added: UnitCallback,
        on_unit_removed: UnitCallback,
        logger: Optional[structlog.stdlib.BoundLogger] = None,
    ):
        """
        Initialize assignment synchronizer.

        Args:
            config: Synchronizer configuration
            registry: Registry client used for polls, lookups and events
            on_unit_added: Called once for each unit that becomes assigned
            on_unit_removed: Called once for each unit that stops being assigned
            logger: Logger to use instead of the module logger
        """
        self._config = config
        self._registry = registry
        self._on_unit_added = on_unit_added
        self._on_unit_removed = on_unit_removed
        self._logger = (logger or get_logger(__name__)).bind(
            node_address=config.node_address
        )

        self._units: Set[UnitKey] = set()
        self._lock = asyncio.Lock()
        self._running = False
        self._poll_task: Optional[asyncio.Task] = None

        self._bridge = AssignmentEventBridge(
            node_address=config.node_address,
            registry=registry,
            on_event=self._on_assignment_event,
            logger=logger,
        )

        self._logger.info(
            "AssignmentSynchronizer initialized",
            poll_interval_ms=config.poll_interval_ms,
            shard_count=config.sharding.shard_count,
            shard_index=config.sharding.shard_index,
        )

    @property
    def is_running(self) -> bool:
        return self._running

    def get_assigned_units(self) -> Set[UnitKey]:
        """
        Get a snapshot of the assigned units.

        Returns:
            Copy of the current set (empty before start())
        """
        return set(self._units)

    def has_unit(self, key: UnitKey) -> bool:
        """Check whether a unit is currently assigned."""
        return key in self._units

    async def start(self) -> None:
        """Subscribe to registry events, poll once, and schedule later polls."""
        self._running = True

        await self._bridge.start()
        await self._tick()

        # destroy() ran while the first poll was in flight
        if not self._running:
            return

        self._poll_task = asyncio.create_task(self._poll_loop())

        self._logger.info("AssignmentSynchronizer started", units=len(self._units))

    async def destroy(self) -> None:
        """Stop polling and events, waiting for in-flight work to finish."""
        self._running = False

        if self._poll_task:
            self._poll_task.cancel()
            await asyncio.gather(self._poll_task, return_exceptions=True)
            self._poll_task = None

        await self._bridge.destroy()

        # Barrier: any critical section already admitted completes first
        async with self._lock:
            pass

        self._logger.info("AssignmentSynchronizer destroyed", units=len(self._units))

    async def _poll_loop(self) -> None:
        """Poll at a fixed delay after each completed poll."""
        while self._running:
            try:
                await asyncio.sleep(self._config.poll_interval_ms / 1000)
                await self._tick()
            except asyncio.CancelledError:
                self._logger.debug("Poll loop cancelled")
                break

    async def _tick(self) -> None:
        try:
            await self._poll_once()
        except Exception as e:
            self._logger.error("Error in poll", error=str(e))

    async def _poll_once(self) -> None:
        """Fetch the full assignment and reconcile the local set with it."""
        try:
            assigned = await self._registry.fetch_assigned_units(
                self._config.node_address
            )
        except Exception as e:
            self._logger.warning("Failed to fetch assigned units", error=str(e))
            return

        polled = self._my_units(assigned.unit_keys())

        async with self._lock:
            if not self._running:
                return

            to_remove = sorted(self._units - polled)
            to_add = sorted(polled - self._units)

            for key in to_remove:
                self._units.discard(key)
                self._on_unit_removed(key)

            for key in to_add:
                self._units.add(key)
                self._on_unit_added(key)

        if to_add or to_remove:
            self._logger.info(
                "Applied polled assignment",
                added=len(to_add),
                removed=len(to_remove),
                units=len(polled),
                watermark=assigned.watermark,
            )
        else:
            self._logger.debug(
                "Polled assignment unchanged",
                units=len(polled),
                watermark=assigned.watermark,
            )

    async def _on_assignment_event(
        self,
        metadata: UnitMetadata,
        change_type: ChangeType,
        watermark: int,
    ) -> None:
        """
        Apply a single-stream change delivered by the event bridge.

        Args:
            metadata: Resolved stream metadata
            change_type: Whether the stream was added or removed
            watermark: Registry freshness marker of the event
        """
        keys = sorted(self._my_units(metadata.unit_keys()))

        async with self._lock:
            if not self._running:
                return

            if change_type == ChangeType.ADDED:
                changed = [key for key in keys if key not in self._units]
                for key in changed:
                    self._units.add(key)
                    self._on_unit_added(key)
            else:
                changed = [key for key in keys if key in self._units]
                for key in changed:
                    self._units.discard(key)
                    self._on_unit_removed(key)

        self._logger.info(
            "Applied assignment event",
            stream_id=metadata.stream_id,
            change_type=change_type.value,
            changed=len(changed),
            watermark=watermark,
        )

    def _my_units(self, keys: Iterable[UnitKey]) -> Set[UnitKey]:
        """Keep only the units in this node's shard."""
        sharding = self._config.sharding
        return {key for key in keys if in_shard(key, sharding)}
