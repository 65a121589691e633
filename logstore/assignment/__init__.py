"""Storage node assignment synchronization."""

from logstore.assignment.event_bridge import AssignmentEventBridge
from logstore.assignment.metadata import (
    AssignedUnits,
    AssignmentEvent,
    ChangeType,
    RegistryEvent,
    UnitKey,
    UnitMetadata,
)
from logstore.assignment.registry import (
    UNIT_ADDED,
    UNIT_REMOVED,
    InMemoryRegistry,
    RegistryClient,
    UnitLookupError,
)
from logstore.assignment.sharding import ShardingParams, in_shard, shard_for
from logstore.assignment.synchronizer import AssignmentSynchronizer, SynchronizerConfig

__all__ = [
    "AssignedUnits",
    "AssignmentEvent",
    "AssignmentEventBridge",
    "AssignmentSynchronizer",
    "ChangeType",
    "InMemoryRegistry",
    "RegistryClient",
    "RegistryEvent",
    "ShardingParams",
    "SynchronizerConfig",
    "UNIT_ADDED",
    "UNIT_REMOVED",
    "UnitKey",
    "UnitLookupError",
    "UnitMetadata",
    "in_shard",
    "shard_for",
]
