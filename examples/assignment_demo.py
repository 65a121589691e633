#!/usr/bin/env python3
"""
Demo of storage node assignment synchronization.

Assigns streams to a node through the in-memory registry and shows the
synchronizer picking up each change.
"""

import asyncio

from logstore.assignment.registry import InMemoryRegistry
from logstore.assignment.synchronizer import AssignmentSynchronizer, SynchronizerConfig
from logstore.utils.config import get_config
from logstore.utils.logging import configure_logging

NODE = "0xaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaa"


async def main():
    print("=" * 60)
    print("LogStore - Assignment Synchronization Demo")
    print("=" * 60)

    config = get_config()
    config.set("node.address", NODE)
    config.set("assignment.poll_interval_ms", 500)
    configure_logging(log_level="WARNING", log_format="console")

    # Create registry with a few streams
    print("\n[1] Creating streams...")
    registry = InMemoryRegistry()
    await registry.create_stream("sensors/temperature", partition_count=2)
    await registry.create_stream("sensors/humidity", partition_count=4)
    await registry.create_stream("alerts", partition_count=1)
    await registry.assign_stream("sensors/temperature", NODE)
    print("✅ Streams created, sensors/temperature assigned")

    # Start synchronizer
    print("\n[2] Starting synchronizer...")
    synchronizer = AssignmentSynchronizer(
        config=SynchronizerConfig.from_config(config),
        registry=registry,
        on_unit_added=lambda key: print(f"  ➕ {key}"),
        on_unit_removed=lambda key: print(f"  ➖ {key}"),
    )
    await synchronizer.start()

    # Push events
    print("\n[3] Assigning sensors/humidity and alerts...")
    await registry.assign_stream("sensors/humidity", NODE)
    await registry.assign_stream("alerts", NODE)
    await asyncio.sleep(0.1)

    print("\n[4] Removing sensors/temperature...")
    await registry.unassign_stream("sensors/temperature", NODE)
    await asyncio.sleep(0.1)

    # Poll picks up a deletion that emits no event
    print("\n[5] Deleting alerts, waiting for next poll...")
    await registry.delete_stream("alerts")
    await asyncio.sleep(1.0)

    units = sorted(synchronizer.get_assigned_units())
    print(f"\n✅ Node stores {len(units)} units: {', '.join(str(u) for u in units)}")

    await synchronizer.destroy()

    print("\n" + "=" * 60)
    print("Demo completed successfully!")
    print("=" * 60)


if __name__ == '__main__':
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\n\nDemo interrupted by user")
