"""
LogStore - storage node assignment synchronization.

This package keeps a storage node's view of the (stream, partition) units it
is responsible for persisting up to date. It provides:
- Data model for stream partitions and registry assignment events
- Fleet sharding filter for multi-node deployments
- Registry client interface with an in-memory implementation
- Event bridge translating registry push events into unit changes
- Synchronizer merging periodic polls and push events into one local set
"""

__version__ = "0.1.0"

from logstore import assignment, utils

__all__ = [
    "assignment",
    "utils",
]
