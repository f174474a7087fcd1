"""
Connectivity collection over a board's connector graph.

Starting from a seed selection, walks connector adjacency to find every
shape reachable from any seed (the union of the seeds' connected
components). The walk is read-only and tolerant of missing items.
"""

from __future__ import annotations

import logging
from typing import Iterable

from connector_optimizer.models import GraphAccess

logger = logging.getLogger("connector-optimizer")


async def collect_connected(
    seed_ids: Iterable[str],
    graph: GraphAccess,
    visited: set[str] | None = None,
) -> set[str]:
    """Return the ids of all items reachable from *seed_ids* via connectors.

    Uses an explicit stack instead of recursion so deep chains cannot hit
    the interpreter's recursion limit. Each id is expanded at most once:
    re-entering a visited id does nothing, which makes cycles safe and
    the result independent of traversal order.

    A lookup that raises or returns nothing marks the id visited and
    treats it as an isolated leaf. The failure is logged, never raised.

    Args:
        seed_ids: Item ids to start from.
        graph: Board access capability.
        visited: Optional set to extend in place (shared across seeds).

    Returns:
        The visited set, seeds included.
    """
    seen: set[str] = visited if visited is not None else set()
    stack: list[str] = [sid for sid in seed_ids if sid]

    while stack:
        item_id = stack.pop()
        if item_id in seen:
            continue
        seen.add(item_id)

        try:
            item = await graph.get_item_by_id(item_id)
            if item is None:
                continue
            connectors = await graph.get_incident_connectors(item_id)
        except Exception as exc:
            logger.warning("Could not traverse item %s: %s", item_id, exc)
            continue

        for conn in connectors:
            for end_id in (conn.start.item, conn.end.item):
                if end_id and end_id not in seen:
                    stack.append(end_id)

    return seen
