"""
Assignment data model.

Describes stream partitions (units), resolved stream metadata and the
events a registry emits when streams are assigned to or removed from
storage nodes.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List


class ChangeType(str, Enum):
    """Kind of assignment change carried by a registry event."""

    ADDED = "added"
    REMOVED = "removed"


@dataclass(frozen=True, order=True)
class UnitKey:
    """
    A single stream partition a storage node may be responsible for.

    Ordered by (stream_id, partition) so sets of keys iterate
    deterministically once sorted.

    Attributes:
        stream_id: Stream identifier
        partition: Partition index (0-based)
    """
    stream_id: str
    partition: int

    def __post_init__(self):
        if self.partition < 0:
            raise ValueError(f"Invalid partition: {self.partition}")

    def __str__(self) -> str:
        return f"{self.stream_id}#{self.partition}"


@dataclass(frozen=True)
class UnitMetadata:
    """
    Resolved descriptor of a stream.

    Attributes:
        stream_id: Stream identifier
        partition_count: Number of partitions in the stream
    """
    stream_id: str
    partition_count: int

    def __post_init__(self):
        if self.partition_count < 1:
            raise ValueError(f"Invalid partition_count: {self.partition_count}")

    def unit_keys(self) -> List[UnitKey]:
        """
        Expand the stream into one key per partition.

        Returns:
            Keys for partitions 0 to partition_count - 1, in order
        """
        return [UnitKey(self.stream_id, p) for p in range(self.partition_count)]


@dataclass(frozen=True)
class RegistryEvent:
    """
    Raw assignment notification as delivered by the registry.

    The change type is implied by the event name the payload arrives on.

    Attributes:
        stream_id: Stream identifier
        node_address: Storage node the stream was assigned to or removed from
        watermark: Registry freshness marker (e.g. block number)
    """
    stream_id: str
    node_address: str
    watermark: int


@dataclass(frozen=True)
class AssignmentEvent:
    """
    Registry event normalized with its change type.

    Attributes:
        node_address: Storage node the event is addressed to
        stream_id: Stream identifier
        change_type: Whether the stream was added or removed
        watermark: Registry freshness marker
    """
    node_address: str
    stream_id: str
    change_type: ChangeType
    watermark: int

    @classmethod
    def from_registry_event(
        cls,
        event: RegistryEvent,
        change_type: ChangeType,
    ) -> "AssignmentEvent":
        """Create from a raw registry payload."""
        return cls(
            node_address=event.node_address,
            stream_id=event.stream_id,
            change_type=change_type,
            watermark=event.watermark,
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for logging."""
        return {
            "node_address": self.node_address,
            "stream_id": self.stream_id,
            "change_type": self.change_type.value,
            "watermark": self.watermark,
        }


@dataclass
class AssignedUnits:
    """
    Full-state poll result.

    Attributes:
        units: Streams currently assigned to the node
        watermark: Registry freshness marker of the snapshot
    """
    units: List[UnitMetadata] = field(default_factory=list)
    watermark: int = 0

    def unit_keys(self) -> List[UnitKey]:
        """Expand every stream into its partition keys."""
        return [key for unit in self.units for key in unit.unit_keys()]
