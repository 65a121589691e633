"""
Registry client interface and in-memory registry.

The registry is the source of truth for which streams are assigned to which
storage nodes. Nodes learn about assignments two ways:
- Full-state poll of the streams assigned to a node
- Push events for single stream additions and removals
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional, Set

from logstore.assignment.metadata import AssignedUnits, RegistryEvent, UnitMetadata
from logstore.utils.logging import get_logger

logger = get_logger(__name__)

UNIT_ADDED = "unit_added"
UNIT_REMOVED = "unit_removed"
EVENT_NAMES = (UNIT_ADDED, UNIT_REMOVED)

RegistryEventHandler = Callable[[RegistryEvent], None]


class UnitLookupError(Exception):
    """Stream is unknown to the registry or has been deleted."""
    pass


class RegistryClient(ABC):
    """Abstract client for the stream assignment registry."""

    @abstractmethod
    async def fetch_assigned_units(self, node_address: str) -> AssignedUnits:
        """
        Fetch every stream currently assigned to a node.

        Args:
            node_address: Storage node address

        Returns:
            Assigned streams and the watermark of the snapshot
        """
        pass

    @abstractmethod
    async def get_unit_metadata(self, stream_id: str) -> UnitMetadata:
        """
        Resolve a stream's metadata.

        Args:
            stream_id: Stream identifier

        Returns:
            Stream metadata

        Raises:
            UnitLookupError: If the stream does not exist
        """
        pass

    @abstractmethod
    def on(self, event_name: str, handler: RegistryEventHandler) -> None:
        """Register a handler for UNIT_ADDED or UNIT_REMOVED."""
        pass

    @abstractmethod
    def off(self, event_name: str, handler: RegistryEventHandler) -> None:
        """Unregister a handler previously passed to on()."""
        pass


class InMemoryRegistry(RegistryClient):
    """
    Registry kept in process memory.

    Every assignment change advances the watermark by one, the way a
    contract-backed registry advances with each mined block.
    """

    def __init__(self, watermark: int = 0):
        """
        Initialize in-memory registry.

        Args:
            watermark: Starting watermark
        """
        self._streams: Dict[str, UnitMetadata] = {}
        # stream_id -> node addresses storing it
        self._assignments: Dict[str, Set[str]] = {}
        self._watermark = watermark
        self._handlers: Dict[str, List[RegistryEventHandler]] = {
            name: [] for name in EVENT_NAMES
        }
        self._lock = asyncio.Lock()

        logger.info("InMemoryRegistry initialized", watermark=watermark)

    @property
    def watermark(self) -> int:
        return self._watermark

    async def create_stream(self, stream_id: str, partition_count: int = 1) -> UnitMetadata:
        """
        Create a stream (or update its partition count).

        Args:
            stream_id: Stream identifier
            partition_count: Number of partitions

        Returns:
            Stream metadata
        """
        async with self._lock:
            metadata = UnitMetadata(stream_id=stream_id, partition_count=partition_count)
            self._streams[stream_id] = metadata
            self._assignments.setdefault(stream_id, set())

            logger.debug(
                "Stream created",
                stream_id=stream_id,
                partition_count=partition_count,
            )

            return metadata

    async def delete_stream(self, stream_id: str) -> bool:
        """
        Delete a stream and drop its assignments without emitting events.

        Args:
            stream_id: Stream identifier

        Returns:
            True if the stream existed
        """
        async with self._lock:
            if stream_id not in self._streams:
                return False

            del self._streams[stream_id]
            self._assignments.pop(stream_id, None)

            logger.debug("Stream deleted", stream_id=stream_id)

            return True

    async def assign_stream(self, stream_id: str, node_address: str) -> bool:
        """
        Assign a stream to a storage node and emit UNIT_ADDED.

        Args:
            stream_id: Stream identifier
            node_address: Storage node address

        Returns:
            True if the assignment changed

        Raises:
            UnitLookupError: If the stream does not exist
        """
        async with self._lock:
            self._require_stream(stream_id)
            nodes = self._assignments[stream_id]

            if node_address in nodes:
                return False

            nodes.add(node_address)
            self._watermark += 1
            event = RegistryEvent(stream_id, node_address, self._watermark)

        logger.debug(
            "Stream assigned",
            stream_id=stream_id,
            node_address=node_address,
            watermark=event.watermark,
        )
        self._emit(UNIT_ADDED, event)
        return True

    async def unassign_stream(self, stream_id: str, node_address: str) -> bool:
        """
        Remove a stream from a storage node and emit UNIT_REMOVED.

        Args:
            stream_id: Stream identifier
            node_address: Storage node address

        Returns:
            True if the assignment changed
        """
        async with self._lock:
            nodes = self._assignments.get(stream_id, set())

            if node_address not in nodes:
                return False

            nodes.discard(node_address)
            self._watermark += 1
            event = RegistryEvent(stream_id, node_address, self._watermark)

        logger.debug(
            "Stream unassigned",
            stream_id=stream_id,
            node_address=node_address,
            watermark=event.watermark,
        )
        self._emit(UNIT_REMOVED, event)
        return True

    async def is_stored_stream(self, stream_id: str, node_address: str) -> bool:
        """Check whether a node stores a stream."""
        async with self._lock:
            return node_address in self._assignments.get(stream_id, set())

    async def get_storage_nodes(self, stream_id: Optional[str] = None) -> List[str]:
        """
        Get storage node addresses.

        Args:
            stream_id: Only nodes storing this stream; all known nodes if None

        Returns:
            Sorted node addresses
        """
        async with self._lock:
            if stream_id is not None:
                return sorted(self._assignments.get(stream_id, set()))

            nodes: Set[str] = set()
            for stream_nodes in self._assignments.values():
                nodes.update(stream_nodes)
            return sorted(nodes)

    async def fetch_assigned_units(self, node_address: str) -> AssignedUnits:
        async with self._lock:
            units = [
                self._streams[stream_id]
                for stream_id in sorted(self._assignments)
                if stream_id in self._streams
                and node_address in self._assignments[stream_id]
            ]
            return AssignedUnits(units=units, watermark=self._watermark)

    async def get_unit_metadata(self, stream_id: str) -> UnitMetadata:
        async with self._lock:
            return self._require_stream(stream_id)

    def on(self, event_name: str, handler: RegistryEventHandler) -> None:
        self._check_event_name(event_name)
        self._handlers[event_name].append(handler)

    def off(self, event_name: str, handler: RegistryEventHandler) -> None:
        self._check_event_name(event_name)
        handlers = self._handlers[event_name]
        if handler in handlers:
            handlers.remove(handler)

    def listener_count(self, event_name: Optional[str] = None) -> int:
        """
        Count registered handlers.

        Args:
            event_name: Count only this event; all events if None

        Returns:
            Number of handlers
        """
        if event_name is not None:
            self._check_event_name(event_name)
            return len(self._handlers[event_name])
        return sum(len(handlers) for handlers in self._handlers.values())

    def _require_stream(self, stream_id: str) -> UnitMetadata:
        metadata = self._streams.get(stream_id)
        if metadata is None:
            raise UnitLookupError(f"Stream not found: {stream_id}")
        return metadata

    def _check_event_name(self, event_name: str) -> None:
        if event_name not in EVENT_NAMES:
            raise ValueError(f"Unknown registry event: {event_name}")

    def _emit(self, event_name: str, event: RegistryEvent) -> None:
        # Handlers may unsubscribe during emit
        for handler in list(self._handlers[event_name]):
            handler(event)
