"""
Bridge from registry push events to unit-level assignment changes.

Filters out events addressed to other storage nodes, resolves each
remaining event's stream into full metadata and forwards the result to
the owner. Lookup failures drop the event; the owner's periodic poll
recovers from anything missed here.
"""

import asyncio
from typing import Awaitable, Callable, Optional, Set

import structlog

from logstore.assignment.metadata import (
    AssignmentEvent,
    ChangeType,
    RegistryEvent,
    UnitMetadata,
)
from logstore.assignment.registry import UNIT_ADDED, UNIT_REMOVED, RegistryClient
from logstore.utils.logging import get_logger

AssignmentCallback = Callable[[UnitMetadata, ChangeType, int], Awaitable[None]]


class AssignmentEventBridge:
    """
    Subscribes to registry assignment events for one storage node.

    Holds exactly two subscriptions, one per registry event kind. The owner
    must call start() at most once per lifecycle.
    """

    def __init__(
        self,
        node_address: str,
        registry: RegistryClient,
        on_event: AssignmentCallback,
        logger: Optional[structlog.stdlib.BoundLogger] = None,
    ):
        """
        Initialize event bridge.

        Args:
            node_address: Address of this storage node
            registry: Registry client to subscribe to
            on_event: Coroutine called with (metadata, change_type, watermark)
                for every accepted and resolved event
            logger: Logger to use instead of the module logger
        """
        self._node_address = node_address
        self._registry = registry
        self._on_event = on_event
        self._logger = (logger or get_logger(__name__)).bind(node_address=node_address)

        self._started = False
        self._lookup_tasks: Set[asyncio.Task] = set()

    async def start(self) -> None:
        """Subscribe to UNIT_ADDED and UNIT_REMOVED."""
        self._registry.on(UNIT_ADDED, self._handle_unit_added)
        self._registry.on(UNIT_REMOVED, self._handle_unit_removed)
        self._started = True

        self._logger.info("AssignmentEventBridge started")

    async def destroy(self) -> None:
        """
        Unsubscribe and cancel lookups still in flight.

        No-op if start() was never called.
        """
        if not self._started:
            return

        self._registry.off(UNIT_ADDED, self._handle_unit_added)
        self._registry.off(UNIT_REMOVED, self._handle_unit_removed)
        self._started = False

        tasks = list(self._lookup_tasks)
        for task in tasks:
            task.cancel()

        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        self._logger.info(
            "AssignmentEventBridge destroyed",
            cancelled_lookups=len(tasks),
        )

    @property
    def pending_lookups(self) -> int:
        """Number of events still being resolved."""
        return len(self._lookup_tasks)

    def _handle_unit_added(self, event: RegistryEvent) -> None:
        self._handle_event(event, ChangeType.ADDED)

    def _handle_unit_removed(self, event: RegistryEvent) -> None:
        self._handle_event(event, ChangeType.REMOVED)

    def _handle_event(self, event: RegistryEvent, change_type: ChangeType) -> None:
        """
        Accept an event addressed to this node and schedule its lookup.

        Called synchronously by the registry from the event loop thread.
        """
        if event.node_address != self._node_address:
            return

        assignment = AssignmentEvent.from_registry_event(event, change_type)

        self._logger.debug("Received assignment event", **assignment.to_dict())

        task = asyncio.get_running_loop().create_task(
            self._resolve_and_forward(assignment)
        )
        self._lookup_tasks.add(task)
        task.add_done_callback(self._lookup_tasks.discard)

    async def _resolve_and_forward(self, assignment: AssignmentEvent) -> None:
        """
        Resolve stream metadata and hand the change to the owner.

        Args:
            assignment: Accepted assignment event
        """
        try:
            metadata = await self._registry.get_unit_metadata(assignment.stream_id)
        except Exception as e:
            self._logger.warning(
                "Failed to resolve assignment event",
                stream_id=assignment.stream_id,
                change_type=assignment.change_type.value,
                watermark=assignment.watermark,
                error=str(e),
            )
            return

        try:
            await self._on_event(metadata, assignment.change_type, assignment.watermark)
        except Exception as e:
            self._logger.error(
                "Assignment event handler failed",
                stream_id=assignment.stream_id,
                change_type=assignment.change_type.value,
                error=str(e),
            )
