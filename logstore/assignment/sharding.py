"""
Fleet sharding of the unit space.

A fleet of storage nodes can split the units assigned to it: each node
keeps only the units whose hash lands on its shard index. The filter is a
pure function over UnitKey so reconciliation never depends on how shards
are computed.
"""

import hashlib
from dataclasses import dataclass

from logstore.assignment.metadata import UnitKey


@dataclass(frozen=True)
class ShardingParams:
    """
    Fleet sharding parameters.

    Attributes:
        shard_count: Number of shards in the fleet
        shard_index: Shard owned by this node (0 to shard_count - 1)
    """
    shard_count: int = 1
    shard_index: int = 0

    def __post_init__(self):
        if self.shard_count < 1:
            raise ValueError(f"Invalid shard_count: {self.shard_count}")

        if not 0 <= self.shard_index < self.shard_count:
            raise ValueError(
                f"shard_index {self.shard_index} out of range for "
                f"shard_count {self.shard_count}"
            )

    @property
    def is_single_shard(self) -> bool:
        return self.shard_count == 1


def shard_for(key: UnitKey, shard_count: int) -> int:
    """
    Hash a unit to a shard.

    MD5 of "<stream_id>#<partition>" read as a big-endian integer, so the
    result is stable across processes and Python versions.

    Args:
        key: Unit key
        shard_count: Number of shards

    Returns:
        Shard index (0 to shard_count - 1)
    """
    if shard_count <= 0:
        raise ValueError(f"Invalid shard_count: {shard_count}")

    digest = hashlib.md5(str(key).encode("utf-8")).hexdigest()
    return int(digest, 16) % shard_count


def in_shard(key: UnitKey, params: ShardingParams) -> bool:
    """Check whether a unit belongs to this node's shard."""
    if params.is_single_shard:
        return True
    return shard_for(key, params.shard_count) == params.shard_index
