"""
Connector optimization pipeline.

Sequences connectivity collection, optional grid layout, snap-side
assignment and best-effort persistence for a user selection, and reports
a summary. Every failure is turned into an ``OptimizationResult``; nothing
propagates to the host.
"""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Optional

from connector_optimizer.collector import collect_connected
from connector_optimizer.grid_layout import GridSearchConfig, optimize_grid_layout
from connector_optimizer.models import (
    BoardItem,
    Connector,
    ConnectorShape,
    Edge,
    GraphAccess,
    ItemType,
    Node,
    OptimizationOptions,
    OptimizationResult,
    Shape,
    Side,
)
from connector_optimizer.snapping import assign_snap_sides
from connector_optimizer.validation import ValidationError, validate_options

logger = logging.getLogger("connector-optimizer")


async def optimize_connectors(
    graph: GraphAccess,
    options: OptimizationOptions | None = None,
    selection: list[BoardItem] | None = None,
    config: GridSearchConfig | None = None,
    rng: random.Random | None = None,
) -> OptimizationResult:
    """Re-layout the shapes connected to a selection and tidy their connectors.

    Args:
        graph: Board access capability.
        options: Movement / spacing options (defaults: movement on,
            spacing 1.5, priority 50).
        selection: Items to start from; read from the board when omitted.
        config: Grid search constants.
        rng: Random source for the layout search. Seeded from
            ``options.seed`` when omitted.

    Returns:
        Summary with success flag, message, number of shapes processed and
        number of connectors updated.
    """
    opts = options or OptimizationOptions()
    try:
        validate_options(opts)
    except ValidationError as exc:
        return OptimizationResult(False, f"Invalid options: {exc.message}")

    try:
        return await _run(graph, opts, selection, config, rng)
    except Exception as exc:
        logger.exception("Error optimizing connectors")
        return OptimizationResult(False, f"Optimization failed: {exc}")


async def _run(
    graph: GraphAccess,
    opts: OptimizationOptions,
    selection: list[BoardItem] | None,
    config: GridSearchConfig | None,
    rng: random.Random | None,
) -> OptimizationResult:
    if selection is None:
        selection = await graph.get_selection()
    seed_ids = _seed_ids(selection)
    if not seed_ids:
        return OptimizationResult(False, "No objects selected. Select at least one shape.")

    logger.info("Starting connector optimization for %d selected object(s)", len(selection))

    discovered = await collect_connected(seed_ids, graph)
    logger.info("Found %d connected object(s)", len(discovered))

    fetched = await asyncio.gather(
        *(_safe_get(graph, item_id) for item_id in sorted(discovered))
    )
    shapes: list[Shape] = [
        item for item in fetched
        if item is not None and item.type != ItemType.CONNECTOR
    ]
    shape_ids = {s.id for s in shapes}

    incident = await asyncio.gather(
        *(_safe_connectors(graph, s.id) for s in shapes)
    )
    connectors: dict[str, Connector] = {}
    for conns in incident:
        for conn in conns:
            connectors.setdefault(conn.id, conn)
    internal = [
        c for c in connectors.values()
        if c.start.item in shape_ids and c.end.item in shape_ids
    ]

    attempted = 0
    failed = 0

    positions = {s.id: (s.x, s.y) for s in shapes}
    if opts.allow_movement and shapes:
        nodes = [Node.from_shape(s) for s in shapes]
        edges = [Edge(c.start.item, c.end.item) for c in internal]
        new_positions = optimize_grid_layout(nodes, edges, opts, config, rng)
        for shape in shapes:
            pos = new_positions.get(shape.id)
            if pos is None:
                continue
            attempted += 1
            if not await _commit_position(graph, shape.id, *pos):
                failed += 1
            # Snap sides follow the intended layout even if a write failed.
            positions[shape.id] = pos

    optimized = 0
    for assignment in assign_snap_sides(internal, positions):
        if not assignment.changed:
            continue
        attempted += 1
        ok = await _commit_connector(
            graph,
            assignment.connector_id,
            assignment.start_snap,
            assignment.end_snap,
            assignment.shape,
        )
        if ok:
            optimized += 1
        else:
            failed += 1

    logger.info("Optimized %d out of %d connectors", optimized, len(connectors))

    if attempted and failed == attempted:
        return OptimizationResult(
            False,
            f"All {attempted} update(s) failed.",
            len(shapes),
            0,
        )

    verb = "Rearranged" if opts.allow_movement else "Processed"
    return OptimizationResult(
        True,
        f"{verb} {len(shapes)} object(s) and optimized {optimized} connector(s).",
        len(shapes),
        optimized,
    )


def _seed_ids(selection: list[BoardItem]) -> list[str]:
    """Shape ids of the selection; selected connectors contribute their ends."""
    ids: list[str] = []
    for item in selection:
        if item is None:
            continue
        if item.type == ItemType.CONNECTOR:
            ids.extend(i for i in (item.start.item, item.end.item) if i)
        else:
            ids.append(item.id)
    return ids


async def _safe_get(graph: GraphAccess, item_id: str) -> Optional[BoardItem]:
    try:
        return await graph.get_item_by_id(item_id)
    except Exception as exc:
        logger.warning("Could not fetch item %s: %s", item_id, exc)
        return None


async def _safe_connectors(graph: GraphAccess, node_id: str) -> list[Connector]:
    try:
        return await graph.get_incident_connectors(node_id)
    except Exception as exc:
        logger.warning("Could not fetch connectors of %s: %s", node_id, exc)
        return []


async def _commit_position(graph: GraphAccess, node_id: str, x: float, y: float) -> bool:
    try:
        ok = await graph.commit_position(node_id, x, y)
    except Exception as exc:
        logger.warning("Failed to sync item %s: %s", node_id, exc)
        return False
    if not ok:
        logger.warning("Failed to sync item %s", node_id)
    return bool(ok)


async def _commit_connector(
    graph: GraphAccess,
    connector_id: str,
    start_snap: Side,
    end_snap: Side,
    shape: ConnectorShape,
) -> bool:
    try:
        ok = await graph.commit_connector(connector_id, start_snap, end_snap, shape)
    except Exception as exc:
        logger.warning("Failed to sync connector %s: %s", connector_id, exc)
        return False
    if not ok:
        logger.warning("Failed to sync connector %s", connector_id)
    return bool(ok)
